from .exporter import HoneycombExporter
from .exporter import LegacyReporter
from .exporter import create_exporter
from .internal.writer import ExportOutcome
from .settings import ExporterConfig
from .span import Span
from .span import SpanEvent
from .version import get_version


__version__ = get_version()

__all__ = [
    "ExportOutcome",
    "ExporterConfig",
    "HoneycombExporter",
    "LegacyReporter",
    "Span",
    "SpanEvent",
    "create_exporter",
]
