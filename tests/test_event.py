import re

import mock
import pytest

from hnytrace.constants import MAX_VALUE_SIZE
from hnytrace.internal.event import AttributeMap
from hnytrace.internal.event import Event
from hnytrace.internal.event import format_time
from hnytrace.internal.event import from_span
from tests.utils import SPAN_ID
from tests.utils import TRACE_ID
from tests.utils import make_span
from tests.utils import make_span_event


RESOURCE = {"service.name": "service-name", "service.namespace": "service-namespace"}


def test_end_to_end_event():
    span = make_span(attributes={"attr1": "value1", "attr2": {"attr3": 4}})

    events = from_span(span, RESOURCE, AttributeMap())

    assert len(events) == 1
    event = events[0]
    assert event.data["attr1"] == "value1"
    assert event.data["attr2.attr3"] == 4
    assert event.data["service.name"] == "service-name"
    assert event.data["service.namespace"] == "service-namespace"
    assert event.data["name"] == "some-span"
    assert isinstance(event.data["duration_ms"], float)
    assert re.match(r"^[0-9a-f]{16}$", event.data["trace.span_id"])
    assert re.match(r"^[0-9a-f]{32}$", event.data["trace.trace_id"])
    assert "trace.parent_id" not in event.data
    assert event.to_dict()["samplerate"] == 1
    assert list(event.data) == sorted(event.data)


def test_derived_fields():
    span = make_span(parent_span_id=0x1F, duration_ns=1_500_000)

    (event,) = from_span(span)

    assert event.data == {
        "duration_ms": 1.5,
        "name": "some-span",
        "trace.parent_id": "000000000000001f",
        "trace.span_id": "%016x" % SPAN_ID,
        "trace.trace_id": "%032x" % TRACE_ID,
    }
    assert event.trace_id == TRACE_ID
    assert event.time == "2020-09-13T12:26:40.123456Z"


def test_duration_uses_microseconds():
    span = make_span(start_time_ns=1_000_999, duration_ns=2_000)
    (event,) = from_span(span)
    # 1000us -> 1002us
    assert event.data["duration_ms"] == 0.002


def test_precedence():
    span = make_span(attributes={"service.name": "from-span", "name": "user-name", "trace.span_id": "x"})

    (event,) = from_span(span, {"service.name": "from-resource", "region": "eu"})

    assert event.data["service.name"] == "from-span"
    assert event.data["region"] == "eu"
    assert event.data["name"] == "some-span"
    assert event.data["trace.span_id"] == "%016x" % SPAN_ID


def test_attribute_map_renames_and_drops():
    attribute_map = AttributeMap.from_mapping({"name": "span.name", "duration_ms": None, "trace_id": ""})

    (event,) = from_span(make_span(), attribute_map=attribute_map)

    assert event.data["span.name"] == "some-span"
    assert "name" not in event.data
    assert "duration_ms" not in event.data
    assert not any(key.startswith("trace.trace") for key in event.data)
    assert "trace.span_id" in event.data


def test_span_kind():
    span = make_span(kind="server")

    assert "trace.span_kind" not in from_span(span)[0].data
    assert from_span(span, send_span_kind=True)[0].data["trace.span_kind"] == "server"
    assert "trace.span_kind" not in from_span(make_span(kind=None), send_span_kind=True)[0].data

    attribute_map = AttributeMap.from_mapping({"span_kind": "span.kind"})
    (event,) = from_span(span, attribute_map=attribute_map, send_span_kind=True)
    assert event.data["span.kind"] == "server"


def test_span_name_with_lone_surrogate():
    (event,) = from_span(make_span(name="caf\udce9"))
    assert event.data["name"] == "caf\\udce9"


def test_attribute_map_unknown_key():
    with pytest.raises(ValueError, match="colour"):
        AttributeMap.from_mapping({"colour": "blue"})


def test_long_values_trimmed():
    (event,) = from_span(make_span(attributes={"big": "x" * 60000, "small": "y"}))
    assert len(event.data["big"].encode("utf-8")) == MAX_VALUE_SIZE
    assert event.data["small"] == "y"


def test_samplerate_key_absent():
    (event,) = from_span(make_span(), samplerate_key="sample_rate")
    # Still undecided, so a fixed sampler can set it
    assert event.samplerate is None
    assert event.to_dict()["samplerate"] == 1


def test_samplerate_key_undecided_without_key():
    (event,) = from_span(make_span(attributes={"sample_rate": 5}))
    assert event.samplerate is None
    assert event.data["sample_rate"] == 5
    assert event.to_dict()["samplerate"] == 1


@pytest.mark.parametrize("value,expected", [(10, 10), (10.0, 10), ("20", 20)])
def test_samplerate_key_extracted(value, expected):
    (event,) = from_span(make_span(attributes={"sample_rate": value}), samplerate_key="sample_rate")
    assert event.samplerate == expected
    assert "sample_rate" not in event.data


@pytest.mark.parametrize("value", [0, -3, "often", True, 0.5])
def test_samplerate_key_invalid(value):
    with mock.patch("hnytrace.internal.event.log") as log:
        (event,) = from_span(make_span(attributes={"sample_rate": value}), samplerate_key="sample_rate")
    assert event.samplerate == 1
    assert "sample_rate" not in event.data
    log.warning.assert_called_once()


def test_repr_unsupported():
    (dropped,) = from_span(make_span(attributes={"tags": ["a", "b"]}))
    (kept,) = from_span(make_span(attributes={"tags": ["a", "b"]}), repr_unsupported=True)
    assert "tags" not in dropped.data
    assert kept.data["tags"] == "['a', 'b']"


def test_span_events_are_opt_in():
    span = make_span(events=[make_span_event(attributes={"exception.type": "ValueError"})])
    assert len(from_span(span, RESOURCE)) == 1


def test_span_events():
    span_event = make_span_event(attributes={"exception.type": "ValueError", "sample_rate": 3})
    span = make_span(attributes={"sample_rate": 4}, events=[span_event])

    span_data, event_data = from_span(span, RESOURCE, samplerate_key="sample_rate", send_span_events=True)

    assert event_data.samplerate == span_data.samplerate == 4
    assert event_data.trace_id == TRACE_ID
    assert event_data.time == format_time(span_event.timestamp_ns)
    assert event_data.data == {
        "duration_ms": 0,
        "exception.type": "ValueError",
        "meta.span_type": "span_event",
        "name": "exception",
        "service.name": "service-name",
        "service.namespace": "service-namespace",
        "trace.parent_id": "%016x" % SPAN_ID,
        "trace.trace_id": "%032x" % TRACE_ID,
    }


def test_format_time():
    assert format_time(0) == "1970-01-01T00:00:00.000000Z"
    assert format_time(1_999) == "1970-01-01T00:00:00.000001Z"


def test_event_now():
    assert re.match(r"^\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{6}Z$", Event.now())


def test_event_to_dict():
    event = Event(time="2020-01-01T00:00:00.000000Z", data={"a": 1}, samplerate=7, trace_id=3)
    assert event.to_dict() == {"time": "2020-01-01T00:00:00.000000Z", "samplerate": 7, "data": {"a": 1}}
