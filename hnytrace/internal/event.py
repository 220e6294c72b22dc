import dataclasses
from datetime import datetime
from datetime import timedelta
from datetime import timezone
import math
from typing import Any
from typing import Dict
from typing import Iterable
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple

from hnytrace.constants import DEFAULT_ATTRIBUTE_NAMES
from hnytrace.constants import DEFAULT_SAMPLE_RATE
from hnytrace.constants import SPAN_EVENT_TYPE
from hnytrace.span import Span
from hnytrace.span import SpanEvent

from .attributes import CleanAttributes
from .attributes import CleanValue
from .attributes import clean
from .attributes import clean_str
from .attributes import merge
from .attributes import trim_long_string
from .logger import get_logger


log = get_logger(__name__)

TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def format_time(time_ns: int) -> str:
    """Render nanoseconds since the epoch as an ISO-8601 UTC timestamp with microsecond precision."""
    return (_EPOCH + timedelta(microseconds=time_ns // 1000)).strftime(TIME_FORMAT)


def format_span_id(span_id: int) -> str:
    return "%016x" % span_id


def format_trace_id(trace_id: int) -> str:
    return "%032x" % trace_id


@dataclasses.dataclass
class Event:
    """A single event of the batch API.

    ``samplerate`` is ``None`` until something decides it, the wire form then carries ``1``.
    ``trace_id`` is not sent; samplers use it to keep or drop whole traces consistently.
    """

    time: str
    data: Dict[str, CleanValue]
    samplerate: Optional[int] = None
    trace_id: Optional[int] = None

    @staticmethod
    def now() -> str:
        return datetime.now(timezone.utc).strftime(TIME_FORMAT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "samplerate": DEFAULT_SAMPLE_RATE if self.samplerate is None else self.samplerate,
            "data": self.data,
        }


@dataclasses.dataclass(frozen=True)
class AttributeMap:
    """Dataset attribute names of the fields derived from each span.

    A field mapped to ``None`` or to an empty name is not sent.
    """

    duration_ms: Optional[str] = DEFAULT_ATTRIBUTE_NAMES["duration_ms"]
    name: Optional[str] = DEFAULT_ATTRIBUTE_NAMES["name"]
    parent_span_id: Optional[str] = DEFAULT_ATTRIBUTE_NAMES["parent_span_id"]
    span_id: Optional[str] = DEFAULT_ATTRIBUTE_NAMES["span_id"]
    span_kind: Optional[str] = DEFAULT_ATTRIBUTE_NAMES["span_kind"]
    span_type: Optional[str] = DEFAULT_ATTRIBUTE_NAMES["span_type"]
    trace_id: Optional[str] = DEFAULT_ATTRIBUTE_NAMES["trace_id"]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Optional[str]]) -> "AttributeMap":
        unknown = sorted(set(mapping) - set(DEFAULT_ATTRIBUTE_NAMES))
        if unknown:
            raise ValueError("Unknown derived attribute(s): %s" % ", ".join(unknown))
        return cls(**mapping)

    def rename(self, derived: Iterable[Tuple[str, Optional[CleanValue]]]) -> Iterator[Tuple[str, CleanValue]]:
        for key, value in derived:
            name = getattr(self, key)
            if isinstance(name, str) and name and value is not None:
                yield name, value


DEFAULT_ATTRIBUTE_MAP = AttributeMap()


def _duration_ms(start_time_ns: int, end_time_ns: int) -> float:
    return (end_time_ns // 1000 - start_time_ns // 1000) / 1000


def _samplerate(value: Any, samplerate_key: str) -> int:
    rate: Any = value
    if isinstance(rate, str):
        try:
            rate = int(rate)
        except ValueError:
            pass
    if isinstance(rate, float) and math.isfinite(rate):
        rate = int(rate)
    if isinstance(rate, int) and not isinstance(rate, bool) and rate > 0:
        return rate
    log.warning(
        "Invalid sample rate %r in span attribute %r, using %d instead", value, samplerate_key, DEFAULT_SAMPLE_RATE
    )
    return DEFAULT_SAMPLE_RATE


def _finish(data: CleanAttributes) -> Dict[str, CleanValue]:
    return dict(trim_long_string(key, value) for key, value in data)


def from_span(
    span: Span,
    resource_attributes: Optional[Mapping[str, Any]] = None,
    attribute_map: Optional[AttributeMap] = None,
    samplerate_key: Optional[str] = None,
    repr_unsupported: bool = False,
    send_span_events: bool = False,
    send_span_kind: bool = False,
) -> List[Event]:
    """Build the events describing ``span``.

    Span attributes win over resource attributes, derived fields (name, duration, identifiers) win over both.
    One event is returned, plus one per span event when ``send_span_events`` is set.
    The span kind is only sent when ``send_span_kind`` is set.
    """
    if attribute_map is None:
        attribute_map = DEFAULT_ATTRIBUTE_MAP
    resource = clean(resource_attributes or {}, repr_unsupported)

    derived = attribute_map.rename(
        [
            ("duration_ms", _duration_ms(span.start_time_ns, span.end_time_ns)),
            ("name", clean_str(span.name)),
            ("parent_span_id", None if span.parent_span_id is None else format_span_id(span.parent_span_id)),
            ("span_id", format_span_id(span.span_id)),
            ("span_kind", span.kind if send_span_kind else None),
            ("trace_id", format_trace_id(span.trace_id)),
        ]
    )
    data = _finish(merge(derived, merge(clean(span.attributes, repr_unsupported), resource)))

    # Left undecided when the span does not carry the key
    samplerate = None
    if samplerate_key is not None and samplerate_key in data:
        samplerate = _samplerate(data.pop(samplerate_key), samplerate_key)

    events = [Event(time=format_time(span.start_time_ns), data=data, samplerate=samplerate, trace_id=span.trace_id)]
    if send_span_events:
        for span_event in span.events:
            events.append(
                _from_span_event(span, span_event, resource, attribute_map, samplerate_key, samplerate, repr_unsupported)
            )
    return events


def _from_span_event(
    span: Span,
    span_event: SpanEvent,
    resource: CleanAttributes,
    attribute_map: AttributeMap,
    samplerate_key: Optional[str],
    samplerate: Optional[int],
    repr_unsupported: bool,
) -> Event:
    derived = attribute_map.rename(
        [
            ("duration_ms", 0),
            ("name", clean_str(span_event.name)),
            ("parent_span_id", format_span_id(span.span_id)),
            ("span_type", SPAN_EVENT_TYPE),
            ("trace_id", format_trace_id(span.trace_id)),
        ]
    )
    data = _finish(merge(derived, merge(clean(span_event.attributes, repr_unsupported), resource)))
    if samplerate_key is not None:
        data.pop(samplerate_key, None)
    return Event(time=format_time(span_event.timestamp_ns), data=data, samplerate=samplerate, trace_id=span.trace_id)
