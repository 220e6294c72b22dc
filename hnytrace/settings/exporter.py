from typing import Any
from typing import Dict
from typing import Optional

from envier import validators

from hnytrace import constants
from hnytrace.internal.http import HTTP_CLIENTS
from hnytrace.internal.codec import JSON_CODECS

from ._core import HNYConfig
from ._core import to_source_value


UNSUPPORTED_ATTRIBUTES_POLICIES = ("drop", "repr")


def _validate_positive(value: Optional[float]) -> None:
    if value is not None and value <= 0:
        raise ValueError("value must be positive, got %r" % (value,))


def _parse_headers(headers_str: str) -> Dict[str, str]:
    """Parse a header string (key1=value1,key2=value2) into a dict."""
    out: Dict[str, str] = {}
    for part in headers_str.split(","):
        part = part.strip()
        if not part:
            continue
        key, _, val = part.partition("=")
        key = key.strip()
        if key:
            out[key] = val.strip()
    return out


class AttributeMapConfig(HNYConfig):
    __item__ = __prefix__ = "attribute_map"

    duration_ms = HNYConfig.v(
        str,
        "duration_ms",
        default=constants.DEFAULT_ATTRIBUTE_NAMES["duration_ms"],
        help_type="String",
        help="Dataset attribute holding the span duration in milliseconds",
    )

    name = HNYConfig.v(
        str,
        "name",
        default=constants.DEFAULT_ATTRIBUTE_NAMES["name"],
        help_type="String",
        help="Dataset attribute holding the span name",
    )

    parent_span_id = HNYConfig.v(
        str,
        "parent_span_id",
        default=constants.DEFAULT_ATTRIBUTE_NAMES["parent_span_id"],
        help_type="String",
        help="Dataset attribute holding the parent span identifier",
    )

    span_id = HNYConfig.v(
        str,
        "span_id",
        default=constants.DEFAULT_ATTRIBUTE_NAMES["span_id"],
        help_type="String",
        help="Dataset attribute holding the span identifier",
    )

    span_kind = HNYConfig.v(
        str,
        "span_kind",
        default=constants.DEFAULT_ATTRIBUTE_NAMES["span_kind"],
        help_type="String",
        help="Dataset attribute holding the span kind, sent by the legacy reporter only",
    )

    span_type = HNYConfig.v(
        str,
        "span_type",
        default=constants.DEFAULT_ATTRIBUTE_NAMES["span_type"],
        help_type="String",
        help="Dataset attribute marking events derived from span events",
    )

    trace_id = HNYConfig.v(
        str,
        "trace_id",
        default=constants.DEFAULT_ATTRIBUTE_NAMES["trace_id"],
        help_type="String",
        help="Dataset attribute holding the trace identifier",
    )

    def as_dict(self) -> Dict[str, str]:
        return {key: getattr(self, key) for key in constants.DEFAULT_ATTRIBUTE_NAMES}


class ExporterConfig(HNYConfig):
    __prefix__ = "honeycomb"

    api_endpoint = HNYConfig.v(
        str,
        "api_endpoint",
        default=constants.DEFAULT_API_ENDPOINT,
        parser=lambda url: url.rstrip("/"),
        help_type="String",
        help="Honeycomb API endpoint",
    )

    dataset = HNYConfig.v(
        str,
        "dataset",
        default=constants.DEFAULT_DATASET,
        help_type="String",
        help="Dataset receiving the events",
    )

    write_key = HNYConfig.v(
        Optional[str],
        "write_key",
        default=None,
        help_type="String",
        help="Honeycomb write key. When absent, no outbound requests are made",
    )

    max_event_size = HNYConfig.v(
        int,
        "max_event_size",
        default=constants.MAX_EVENT_SIZE,
        validator=_validate_positive,
        help_type="Integer",
        help="Largest encoded event, in bytes. Larger events are dropped",
    )

    max_batch_size = HNYConfig.v(
        int,
        "max_batch_size",
        default=constants.MAX_BATCH_SIZE,
        validator=_validate_positive,
        help_type="Integer",
        help="Largest encoded batch body, in bytes",
    )

    batch_size = HNYConfig.v(
        int,
        "batch_size",
        default=constants.DEFAULT_BATCH_SIZE,
        validator=_validate_positive,
        help_type="Integer",
        help="Number of events per request for the legacy reporter",
    )

    samplerate_key = HNYConfig.v(
        Optional[str],
        "samplerate_key",
        default=None,
        help_type="String",
        help="Span attribute holding the sample rate of the span, removed from the event data",
    )

    sample_rate = HNYConfig.v(
        Optional[int],
        "sample_rate",
        default=None,
        validator=_validate_positive,
        help_type="Integer",
        help="When set, sample events at a fixed 1 in N rate",
    )

    send_span_events = HNYConfig.v(
        bool,
        "send_span_events",
        default=False,
        help_type="Boolean",
        help="Send span events as separate events linked to their span",
    )

    unsupported_attributes = HNYConfig.v(
        str,
        "unsupported_attributes",
        default="drop",
        parser=str.lower,
        validator=validators.choice(UNSUPPORTED_ATTRIBUTES_POLICIES),
        help_type="String",
        help="What to do with attribute values of unsupported types: drop them or send a short repr",
    )

    http_client = HNYConfig.v(
        str,
        "http_client",
        default="http",
        validator=validators.choice(sorted(HTTP_CLIENTS)),
        help_type="String",
        help="HTTP back end used to deliver batches",
    )

    json_codec = HNYConfig.v(
        str,
        "json_codec",
        default="json",
        validator=validators.choice(sorted(JSON_CODECS)),
        help_type="String",
        help="JSON codec used to encode events and decode replies",
    )

    timeout = HNYConfig.v(
        float,
        "timeout",
        default=constants.DEFAULT_TIMEOUT,
        validator=_validate_positive,
        help_type="Float",
        help="Timeout in seconds of each HTTP request",
    )

    headers = HNYConfig.v(
        dict,
        "headers",
        parser=_parse_headers,
        default={},
        help_type="String",
        help="Extra HTTP headers sent with each batch (key1=value1,key2=value2)",
    )

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        if self.max_event_size + 2 > self.max_batch_size:
            raise ValueError(
                "Invalid value for HONEYCOMB_MAX_EVENT_SIZE: %d does not fit in a batch of HONEYCOMB_MAX_BATCH_SIZE=%d"
                % (self.max_event_size, self.max_batch_size)
            )

    @property
    def repr_unsupported(self) -> bool:
        return self.unsupported_attributes == "repr"

    @classmethod
    def from_options(cls, **options: Any) -> "ExporterConfig":
        """Build a configuration from keyword options, e.g. ``from_options(write_key="...", dataset="dev")``.

        ``attribute_map`` may be given as a dict; mapping a key to ``None`` drops that attribute.
        Raises ``ValueError`` naming any option that is not recognised.
        """
        names = cls.option_names()
        flat = {k: v for k, v in options.items() if k != "attribute_map"}
        for key, value in (options.get("attribute_map") or {}).items():
            flat["attribute_map.%s" % key] = "" if value is None else value

        unknown = sorted(set(flat) - set(names))
        if unknown:
            raise ValueError("Unknown exporter option(s): %s" % ", ".join(unknown))

        source = {names[k]: to_source_value(v) for k, v in flat.items() if v is not None}
        return cls(source=source)


ExporterConfig.include(AttributeMapConfig, namespace="attribute_map")
