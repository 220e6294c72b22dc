# -*- coding: utf-8 -*-
import enum
import math

from hypothesis import given
from hypothesis import strategies as st
import pytest

from hnytrace.constants import MAX_VALUE_SIZE
from hnytrace.internal.attributes import AttributeKind
from hnytrace.internal.attributes import classify
from hnytrace.internal.attributes import clean
from hnytrace.internal.attributes import merge
from hnytrace.internal.attributes import sort
from hnytrace.internal.attributes import trim
from hnytrace.internal.attributes import trim_long_string


class Color(enum.Enum):
    RED = 1
    BLUE = 2


class Level(enum.IntEnum):
    HIGH = 10


@pytest.mark.parametrize(
    "value,kind",
    [
        (None, AttributeKind.NULL),
        ("a", AttributeKind.SCALAR),
        (1, AttributeKind.SCALAR),
        (1.5, AttributeKind.SCALAR),
        (True, AttributeKind.SCALAR),
        (b"raw", AttributeKind.SCALAR),
        (Color.RED, AttributeKind.SYMBOL),
        (Level.HIGH, AttributeKind.SYMBOL),
        ({"a": 1}, AttributeKind.MAP),
        ([1, 2], AttributeKind.UNSUPPORTED),
        ((1, 2), AttributeKind.UNSUPPORTED),
        ({1, 2}, AttributeKind.UNSUPPORTED),
        (object(), AttributeKind.UNSUPPORTED),
        (len, AttributeKind.UNSUPPORTED),
    ],
)
def test_classify(value, kind):
    assert classify(value) is kind


def test_clean_scalars():
    assert clean({"s": "v", "i": 1, "f": 0.5, "b": False}) == [("b", False), ("f", 0.5), ("i", 1), ("s", "v")]


def test_clean_flattens_nested_maps():
    assert clean({"map": {"a": 1, "b": {"c": 2}}}) == [("map.a", 1), ("map.b.c", 2)]


def test_clean_strips_dunder_keys_of_nested_maps():
    assert clean({"user": {"__type__": "User", "__class__": "x", "id": 3}}) == [("user.id", 3)]


@pytest.mark.parametrize(
    "attributes",
    [
        {"x": None},
        {"x": [1, 2, 3]},
        {"x": (1, 2)},
        {"x": {1, 2}},
        {"x": object()},
        {"x": {}},
        {"x": {"y": None}},
        {1: "int key"},
        {("a", "b"): "tuple key"},
        {"x": float("nan")},
        {"x": float("inf")},
        {"x": float("-inf")},
    ],
)
def test_clean_drops(attributes):
    assert clean(attributes) == []


@pytest.mark.parametrize("attributes", [None, "not a map", 42, object(), b"bytes"])
def test_clean_not_a_map(attributes):
    assert clean(attributes) == []


def test_clean_pair_list():
    assert clean([("b", 2), ("a", 1), "junk", ("c",), ["d", 4]]) == [("a", 1), ("b", 2), ("d", 4)]


def test_clean_enums():
    assert clean({Color.BLUE: Color.RED, "level": Level.HIGH}) == [("BLUE", "RED"), ("level", "HIGH")]


def test_clean_bytes():
    assert clean({"ok": "é".encode("utf-8"), "bad": b"\xff\xfe"}) == [("bad", "\\xff\\xfe"), ("ok", "é")]


def test_clean_lone_surrogates():
    # As produced by os.fsdecode() on undecodable file names
    path = b"/tmp/caf\xe9.py".decode("utf-8", errors="surrogateescape")
    cleaned = clean({"code.filepath": path, "k\udce9y": 1, "nested": {"v": "\ud800"}, "ok": "é"})
    assert cleaned == [
        ("code.filepath", "/tmp/caf\\udce9.py"),
        ("k\\udce9y", 1),
        ("nested.v", "\\ud800"),
        ("ok", "é"),
    ]
    # Raises UnicodeEncodeError on any lone surrogate left
    "".join("%s=%s" % pair for pair in cleaned).encode("utf-8")


def test_clean_repr_unsupported():
    cleaned = dict(clean({"list": [1, 2, 3], "none": None, "deep": [[[[1]]]]}, repr_unsupported=True))
    assert cleaned["list"] == "[1, 2, 3]"
    assert "none" not in cleaned
    # Depth is limited
    assert cleaned["deep"] == "[[[...]]]"


def test_clean_repr_unsupported_is_short():
    cleaned = dict(clean({"big": list(range(10000))}, repr_unsupported=True))
    assert len(cleaned["big"]) < 100


def test_clean_first_value_wins():
    assert clean([("a", 1), ("a", 2)]) == [("a", 1)]
    assert clean({"a.b": 1, "a": {"b": 2}}) == [("a.b", 1)]


def test_sort_unique_first_seen():
    assert sort([("b", 1), ("a", 2), ("b", 3)]) == [("a", 2), ("b", 1)]


def test_merge_prefers_first():
    assert merge([("a", 1), ("c", 3)], [("a", 2), ("b", 2)]) == [("a", 1), ("b", 2), ("c", 3)]


scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.floats(allow_nan=True, allow_infinity=True),
    st.text(),
    st.binary(),
    st.lists(st.integers(), max_size=3),
)
attributes = st.recursive(
    st.dictionaries(st.text(), scalars, max_size=5),
    lambda children: st.dictionaries(st.text(), st.one_of(scalars, children), max_size=5),
    max_leaves=20,
)


@given(attributes)
def test_clean_idempotent(attrs):
    cleaned = clean(attrs)
    assert clean(dict(cleaned)) == cleaned


@given(attributes)
def test_clean_output_is_flat_and_sorted(attrs):
    cleaned = clean(attrs)
    keys = [key for key, _ in cleaned]
    assert keys == sorted(set(keys))
    for _, value in cleaned:
        assert isinstance(value, (str, int, float, bool))
        if isinstance(value, float):
            assert math.isfinite(value)


@pytest.mark.parametrize("char", ["a", "é", "日", "😀"])
def test_trim_long_string(char):
    value = char * (MAX_VALUE_SIZE + 1)
    key, trimmed = trim_long_string("key", value)
    assert key == "key"
    encoded = trimmed.encode("utf-8")
    assert len(encoded) == MAX_VALUE_SIZE
    assert trimmed.endswith("...")
    assert trimmed.rstrip(".") == char * len(trimmed.rstrip("."))


def test_trim_ellipsis_grows_to_code_point_boundary():
    # 4-byte characters: the cut point moves back to the start of the character it falls into
    value = "😀" * 10
    assert trim(value, 15) == "😀" * 3 + "..."
    assert trim(value, 16) == "😀" * 3 + "...."
    assert trim(value, 14) == "😀" * 2 + "." * 6


def test_trim_short_strings_untouched():
    value = "x" * MAX_VALUE_SIZE
    assert trim(value) is value
    assert trim_long_string("n", 12) == ("n", 12)


@given(st.text(min_size=1), st.integers(min_value=4, max_value=64))
def test_trim_length_and_validity(value, limit):
    trimmed = trim(value, limit)
    encoded = value.encode("utf-8", errors="backslashreplace")
    if len(encoded) <= limit:
        assert trimmed == value
    else:
        # Decodes, hence never splits a code point
        assert len(trimmed.encode("utf-8")) == limit
        assert trimmed.endswith("...")
