from typing import Any
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional
from typing import Sequence

from hnytrace.internal.codec import JSONCodec
from hnytrace.internal.codec import get_json_codec
from hnytrace.internal.decorator import Decorator
from hnytrace.internal.decorator import decorate
from hnytrace.internal.decorator import resolve_decorator
from hnytrace.internal.encoding import chunk_events
from hnytrace.internal.encoding import encode_events
from hnytrace.internal.event import AttributeMap
from hnytrace.internal.event import Event
from hnytrace.internal.event import from_span
from hnytrace.internal.http import HTTPClient
from hnytrace.internal.http import WriteKeyMissingHTTPClient
from hnytrace.internal.http import create_http_client
from hnytrace.internal.logger import get_logger
from hnytrace.internal.sampling import FixedSampler
from hnytrace.internal.sampling import Sampler
from hnytrace.internal.sampling import is_sampled
from hnytrace.internal.sampling import resolve_sampler
from hnytrace.internal.sampling import sample
from hnytrace.internal.writer import ExportOutcome
from hnytrace.internal.writer import HoneycombWriter
from hnytrace.internal.writer import reduce_outcomes
from hnytrace.settings import ExporterConfig
from hnytrace.span import Span


log = get_logger(__name__)


class ExporterDisabled(Exception):
    """Raised when a dependency of the exporter is not available."""


class HoneycombExporter(object):
    """Turns spans into events and sends them to a Honeycomb dataset.

    :param config: the configuration, read from the environment when omitted
    :param http_client: overrides the HTTP back end named by the configuration
    :param json_codec: overrides the JSON codec named by the configuration
    :param samplers: samplers, or names or ``(name, options)`` pairs of registered ones
    :param decorators: decorators, or names or ``(name, options)`` pairs of registered ones
    """

    send_span_kind = False

    def __init__(
        self,
        config: Optional[ExporterConfig] = None,
        http_client: Optional[HTTPClient] = None,
        json_codec: Optional[JSONCodec] = None,
        samplers: Optional[Sequence[Any]] = None,
        decorators: Optional[Sequence[Any]] = None,
    ) -> None:
        self.config = config if config is not None else ExporterConfig()

        codec = json_codec if json_codec is not None else get_json_codec(self.config.json_codec)
        if codec is None:
            raise ExporterDisabled("JSON codec %r is not available" % self.config.json_codec)

        if not self.config.write_key:
            log.debug("no write key configured, events will not be sent")
            client: HTTPClient = WriteKeyMissingHTTPClient()
        elif http_client is not None:
            client = http_client
        else:
            client = create_http_client(self.config.http_client, self.config.timeout)

        self._samplers: List[Sampler] = [resolve_sampler(s) for s in samplers or []]
        if self.config.sample_rate is not None:
            self._samplers.insert(0, FixedSampler(self.config.sample_rate))
        self._decorators: List[Decorator] = [resolve_decorator(d) for d in decorators or []]

        self._attribute_map = AttributeMap.from_mapping(self.config.attribute_map.as_dict())
        self._writer = HoneycombWriter(
            self.config.api_endpoint,
            self.config.dataset,
            self.config.write_key,
            client,
            codec,
            headers=self.config.headers,
        )
        self._codec = codec

    def __repr__(self):
        return "{}(writer={!r}, samplers={!r}, decorators={!r})".format(
            self.__class__.__name__, self._writer, self._samplers, self._decorators
        )

    @property
    def max_batch_count(self) -> Optional[int]:
        return None

    def events(self, spans: Iterable[Span], resource_attributes: Optional[Mapping[str, Any]] = None) -> List[Event]:
        """Assemble, decorate and sample the events of ``spans``."""
        events: List[Event] = []
        for span in spans:
            try:
                events.extend(
                    from_span(
                        span,
                        resource_attributes,
                        self._attribute_map,
                        samplerate_key=self.config.samplerate_key,
                        repr_unsupported=self.config.repr_unsupported,
                        send_span_events=self.config.send_span_events,
                        send_span_kind=self.send_span_kind,
                    )
                )
            except Exception:
                log.warning("failed to convert span %r, dropping it", getattr(span, "name", span), exc_info=True)

        if self._decorators:
            events = decorate(events, self._decorators)
        if self._samplers:
            events = [event for event in sample(events, self._samplers) if is_sampled(event)]
        return events

    def export(self, spans: Iterable[Span], resource_attributes: Optional[Mapping[str, Any]] = None) -> ExportOutcome:
        spans = list(spans)
        if not spans:
            return ExportOutcome.OK

        encoded = encode_events(self.events(spans, resource_attributes), self._codec)
        batches = chunk_events(
            encoded,
            max_event_size=self.config.max_event_size,
            max_batch_size=self.config.max_batch_size,
            max_batch_count=self.max_batch_count,
        )
        # Every batch is sent, even after a failure
        outcomes = [self._writer.send(batch) for batch in batches]
        return reduce_outcomes(outcomes)

    def shutdown(self) -> None:
        self._writer.client.close()


class LegacyReporter(HoneycombExporter):
    """Exporter sending at most ``batch_size`` events per request, with the span kind of each span."""

    send_span_kind = True

    @property
    def max_batch_count(self) -> Optional[int]:
        return self.config.batch_size

    def report(self, spans: Iterable[Span], resource_attributes: Optional[Mapping[str, Any]] = None) -> ExportOutcome:
        return self.export(spans, resource_attributes)


def create_exporter(config: Optional[ExporterConfig] = None, **kwargs: Any) -> Optional[HoneycombExporter]:
    """Create an exporter, or return ``None`` when it cannot work in this environment.

    Keyword arguments are passed to :class:`HoneycombExporter`, ``legacy=True`` creates a :class:`LegacyReporter`.
    """
    exporter_class = LegacyReporter if kwargs.pop("legacy", False) else HoneycombExporter
    try:
        return exporter_class(config, **kwargs)
    except ExporterDisabled as e:
        log.warning("Honeycomb exporter disabled: %s", e)
        return None
