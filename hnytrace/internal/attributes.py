"""
Conversion of arbitrary span attributes into the flat, JSON-safe pairs accepted by the events API.

Every value is classified into an :class:`AttributeKind` first, then handled according to its kind:

- ``None`` values are dropped;
- strings, numbers and booleans are kept as they are (NaN and infinities are dropped);
- bytes are decoded as UTF-8, undecodable sequences are escaped, so are lone surrogates in strings and keys;
- enum members are replaced by their name;
- mappings are flattened, ``{"http": {"status": 200}}`` becomes ``[("http.status", 200)]``;
- anything else is dropped, or rendered with a short ``repr`` when requested.
"""
import enum
import math
import reprlib
from typing import Any
from typing import Dict
from typing import Iterable
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union

from hnytrace.constants import MAX_VALUE_SIZE


CleanValue = Union[str, int, float, bool]
CleanAttributes = List[Tuple[str, CleanValue]]

ELLIPSIS = b"."
MIN_ELLIPSIS_SIZE = 3

_short_repr = reprlib.Repr()
_short_repr.maxlevel = 2
_short_repr.maxstring = 64
_short_repr.maxother = 64


class AttributeKind(enum.Enum):
    NULL = "null"
    SCALAR = "scalar"
    SYMBOL = "symbol"
    MAP = "map"
    UNSUPPORTED = "unsupported"


def classify(value: Any) -> AttributeKind:
    if value is None:
        return AttributeKind.NULL
    # Checked before scalars: IntEnum and StrEnum members are ints and strings too
    if isinstance(value, enum.Enum):
        return AttributeKind.SYMBOL
    if isinstance(value, (str, bool, int, float, bytes)):
        return AttributeKind.SCALAR
    if isinstance(value, Mapping):
        return AttributeKind.MAP
    return AttributeKind.UNSUPPORTED


def _pairs(attributes: Any) -> Iterator[Tuple[Any, Any]]:
    if isinstance(attributes, Mapping):
        yield from attributes.items()
    elif isinstance(attributes, (list, tuple)):
        for item in attributes:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                yield item[0], item[1]


def clean_str(value: str) -> str:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates, e.g. from surrogateescape decoding
        return value.encode("utf-8", errors="backslashreplace").decode("utf-8")
    return value


def _clean_key(key: Any) -> Optional[str]:
    if isinstance(key, enum.Enum):
        key = key.name
    if isinstance(key, str):
        return clean_str(key)
    return None


def _is_dunder(key: str) -> bool:
    return len(key) > 4 and key.startswith("__") and key.endswith("__")


def _clean_scalar(value: Union[str, bool, int, float, bytes]) -> Optional[CleanValue]:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="backslashreplace")
    if isinstance(value, str):
        return clean_str(value)
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _clean_pairs(
    pairs: Iterable[Tuple[Any, Any]], repr_unsupported: bool, nested: bool
) -> Iterator[Tuple[str, CleanValue]]:
    for raw_key, value in pairs:
        key = _clean_key(raw_key)
        if key is None or (nested and _is_dunder(key)):
            continue

        kind = classify(value)
        if kind is AttributeKind.NULL:
            continue
        elif kind is AttributeKind.SCALAR:
            scalar = _clean_scalar(value)
            if scalar is not None:
                yield key, scalar
        elif kind is AttributeKind.SYMBOL:
            yield key, value.name
        elif kind is AttributeKind.MAP:
            for inner_key, inner_value in _clean_pairs(_pairs(value), repr_unsupported, nested=True):
                yield "%s.%s" % (key, inner_key), inner_value
        elif kind is AttributeKind.UNSUPPORTED:
            if repr_unsupported:
                yield key, _short_repr.repr(value)
        else:
            raise AssertionError("unhandled attribute kind %r" % kind)


def clean(attributes: Any, repr_unsupported: bool = False) -> CleanAttributes:
    """Return the JSON-safe pairs of ``attributes``, sorted by key.

    ``attributes`` may be a mapping or a list of ``(key, value)`` pairs; anything else yields ``[]``.
    When a key appears more than once the first value wins.
    """
    return sort(_clean_pairs(_pairs(attributes), repr_unsupported, nested=False))


def sort(attributes: Iterable[Tuple[str, CleanValue]]) -> CleanAttributes:
    """Sort pairs by key, keeping only the first pair seen for each key."""
    unique: Dict[str, CleanValue] = {}
    for key, value in attributes:
        unique.setdefault(key, value)
    return sorted(unique.items(), key=lambda item: item[0])


def merge(first: Iterable[Tuple[str, CleanValue]], second: Iterable[Tuple[str, CleanValue]]) -> CleanAttributes:
    """Merge two sets of clean attributes, ``first`` wins on key collision."""
    return sort(list(first) + list(second))


def trim(value: str, limit: int = MAX_VALUE_SIZE) -> str:
    """Cut ``value`` to exactly ``limit`` UTF-8 bytes when it is longer, ending it with dots.

    At least three dots are used. The cut point moves back until it does not split a code point,
    so up to three more dots can be needed to keep the byte length.
    """
    encoded = value.encode("utf-8", errors="backslashreplace")
    if len(encoded) <= limit:
        return value
    cut = limit - MIN_ELLIPSIS_SIZE
    # 0b10xxxxxx is a continuation byte
    while cut > 0 and (encoded[cut] & 0xC0) == 0x80:
        cut -= 1
    return encoded[:cut].decode("utf-8") + (ELLIPSIS * (limit - cut)).decode("ascii")


def trim_long_string(key: str, value: CleanValue, limit: int = MAX_VALUE_SIZE) -> Tuple[str, CleanValue]:
    if isinstance(value, str):
        return key, trim(value, limit)
    return key, value
