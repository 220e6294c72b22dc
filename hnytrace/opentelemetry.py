"""
OpenTelemetry SDK support.

Register the exporter with a span processor::

    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    from hnytrace.opentelemetry import HoneycombSpanExporter

    provider = TracerProvider()
    provider.add_span_processor(BatchSpanProcessor(HoneycombSpanExporter()))
    trace.set_tracer_provider(provider)

Configuration is read from the ``HONEYCOMB_*`` environment variables unless
a configuration is given.
"""
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter
from opentelemetry.sdk.trace.export import SpanExportResult

from hnytrace.exporter import HoneycombExporter
from hnytrace.exporter import create_exporter
from hnytrace.internal.logger import get_logger
from hnytrace.internal.writer import ExportOutcome
from hnytrace.settings import ExporterConfig
from hnytrace.span import Span
from hnytrace.span import SpanEvent


log = get_logger(__name__)


def span_from_readable(span: ReadableSpan) -> Span:
    context = span.get_span_context()
    start_time = span.start_time or 0
    return Span(
        trace_id=context.trace_id,
        span_id=context.span_id,
        name=span.name,
        start_time_ns=start_time,
        end_time_ns=span.end_time or start_time,
        parent_span_id=span.parent.span_id if span.parent is not None else None,
        kind=span.kind.name.lower() if span.kind is not None else None,
        attributes=dict(span.attributes or {}),
        events=[SpanEvent(e.name, e.timestamp, dict(e.attributes or {})) for e in span.events],
    )


class HoneycombSpanExporter(SpanExporter):
    """``SpanExporter`` delivering spans to Honeycomb.

    When the exporter cannot be created, for instance because the configured
    JSON codec is not installed, spans are dropped and reported as exported.
    """

    def __init__(self, config: Optional[ExporterConfig] = None, **kwargs: Any) -> None:
        self._exporter: Optional[HoneycombExporter] = create_exporter(config, **kwargs)

    @property
    def enabled(self) -> bool:
        return self._exporter is not None

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        if self._exporter is None:
            return SpanExportResult.SUCCESS

        # Spans of a batch usually share their resource, keep one group per resource
        groups: Dict[int, Tuple[Dict[str, Any], List[Span]]] = {}
        for readable in spans:
            resource = readable.resource
            group = groups.get(id(resource))
            if group is None:
                attributes = dict(resource.attributes) if resource is not None else {}
                group = groups[id(resource)] = (attributes, [])
            group[1].append(span_from_readable(readable))

        result = SpanExportResult.SUCCESS
        for attributes, converted in groups.values():
            if self._exporter.export(converted, attributes) is not ExportOutcome.OK:
                result = SpanExportResult.FAILURE
        return result

    def shutdown(self) -> None:
        if self._exporter is not None:
            self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        # Nothing is buffered
        return True
