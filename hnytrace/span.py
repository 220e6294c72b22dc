from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import List
from typing import Mapping
from typing import Optional


@dataclass(frozen=True)
class SpanEvent:
    """A timestamped annotation recorded on a span."""

    name: str
    timestamp_ns: int
    attributes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Span:
    """A finished span, as handed to the exporter.

    Identifiers are integers: ``trace_id`` holds 128 bits, ``span_id`` and
    ``parent_span_id`` 64 bits. Timestamps are nanoseconds since the Unix epoch.
    """

    trace_id: int
    span_id: int
    name: str
    start_time_ns: int
    end_time_ns: int
    parent_span_id: Optional[int] = None
    kind: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    events: List[SpanEvent] = field(default_factory=list)

    @property
    def duration_ns(self) -> int:
        return self.end_time_ns - self.start_time_ns
