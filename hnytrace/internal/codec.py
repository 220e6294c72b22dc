import abc
import importlib
from typing import Any
from typing import Dict
from typing import Optional

from .logger import get_logger


log = get_logger(__name__)


class JSONCodec(metaclass=abc.ABCMeta):
    content_type = "application/json"

    @abc.abstractmethod
    def encode(self, obj: Any) -> bytes:
        ...

    @abc.abstractmethod
    def decode(self, data: bytes) -> Any:
        ...


class ModuleJSONCodec(JSONCodec):
    """Codec backed by any module exposing ``dumps`` and ``loads``, e.g. ``json`` or ``simplejson``."""

    def __init__(self, module: Any) -> None:
        self._module = module

    def __repr__(self):
        return "{}({})".format(self.__class__.__name__, self._module.__name__)

    def encode(self, obj: Any) -> bytes:
        # NaN and infinities are not valid JSON and are rejected at ingestion
        return self._module.dumps(obj, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode("utf-8")

    def decode(self, data: bytes) -> Any:
        if not isinstance(data, str):
            data = data.decode("utf-8")
        return self._module.loads(data)


# Codec name -> module providing it
JSON_CODECS: Dict[str, str] = {
    "json": "json",
    "simplejson": "simplejson",
}


def get_json_codec(name: str) -> Optional[JSONCodec]:
    """Return the named codec, or ``None`` if the module behind it cannot be imported."""
    try:
        module_name = JSON_CODECS[name]
    except KeyError:
        raise ValueError(
            "Unsupported JSON codec: '%s'. The supported codecs are: %s" % (name, ", ".join(sorted(JSON_CODECS)))
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        log.debug("JSON codec module %r is not installed", module_name, exc_info=True)
        return None
    return ModuleJSONCodec(module)
