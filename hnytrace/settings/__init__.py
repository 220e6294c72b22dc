from ._core import HNYConfig  # noqa:F401
from ._core import ValueSource  # noqa:F401
from .exporter import AttributeMapConfig  # noqa:F401
from .exporter import ExporterConfig  # noqa:F401
