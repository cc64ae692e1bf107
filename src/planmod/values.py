"""Typed attribute values with null and unknown states.

Every value knows its ``Kind`` and is in exactly one of three states:
known, null, or unknown (to be determined at apply time). Collections hold
``Value`` elements; objects and maps hold ``Value`` attributes keyed by name.

Values are treated as immutable: constructors copy their inputs and
accessors return copies.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

UNKNOWN_MARKER = "(known after apply)"
"""Rendering of an unknown value in plain structures and manifests."""


class Kind(str, Enum):
    """Closed set of attribute kinds."""

    BOOL = "bool"
    STRING = "string"
    NUMBER = "number"
    INT64 = "int64"
    FLOAT64 = "float64"
    LIST = "list"
    SET = "set"
    MAP = "map"
    OBJECT = "object"


SCALAR_KINDS = frozenset({Kind.BOOL, Kind.STRING, Kind.NUMBER, Kind.INT64, Kind.FLOAT64})
COLLECTION_KINDS = frozenset({Kind.LIST, Kind.SET, Kind.MAP})
ALL_KINDS = frozenset(Kind)


class ValueState(str, Enum):
    KNOWN = "known"
    NULL = "null"
    UNKNOWN = "unknown"


class Value:
    """
    A single attribute value.

    Attributes:
        kind: Attribute kind this value conforms to
        raw: Python payload for known values (None otherwise). Scalars hold
            bool/str/Decimal/int/float, lists and sets hold a tuple of
            ``Value``, maps and objects hold a dict of ``Value``.
        state: KNOWN, NULL or UNKNOWN
    """

    __slots__ = ("kind", "raw", "state")

    def __init__(self, kind: Kind, raw: Any = None, state: ValueState = ValueState.KNOWN) -> None:
        self.kind = kind
        self.raw = raw if state == ValueState.KNOWN else None
        self.state = state

    # -- predicates ---------------------------------------------------------

    def is_null(self) -> bool:
        return self.state == ValueState.NULL

    def is_unknown(self) -> bool:
        return self.state == ValueState.UNKNOWN

    def is_known(self) -> bool:
        """True when the value is neither null nor unknown."""
        return self.state == ValueState.KNOWN

    def equal(self, other: object) -> bool:
        """
        Compare two values.

        Null and unknown values are equal to values of the same kind in the
        same state. Sets compare without regard to order but with
        multiplicity.
        """
        if not isinstance(other, Value):
            return False
        if self.kind != other.kind or self.state != other.state:
            return False
        if self.state != ValueState.KNOWN:
            return True
        if self.kind == Kind.SET:
            return _same_multiset(self.raw, other.raw)
        if self.kind in (Kind.MAP, Kind.OBJECT):
            if self.raw.keys() != other.raw.keys():
                return False
            return all(v.equal(other.raw[k]) for k, v in self.raw.items())
        if self.kind == Kind.LIST:
            return len(self.raw) == len(other.raw) and all(
                a.equal(b) for a, b in zip(self.raw, other.raw, strict=True)
            )
        return bool(self.raw == other.raw)

    def __eq__(self, other: object) -> bool:
        return self.equal(other)

    __hash__ = None  # type: ignore[assignment]

    # -- accessors ----------------------------------------------------------

    def elements(self) -> list[Value]:
        """Elements of a known list or set, in stored order."""
        if self.kind not in (Kind.LIST, Kind.SET):
            raise TypeError(f"{self.kind.value} value has no elements")
        return list(self.raw) if self.is_known() else []

    def items(self) -> dict[str, Value]:
        """Entries of a known map or attributes of a known object."""
        if self.kind not in (Kind.MAP, Kind.OBJECT):
            raise TypeError(f"{self.kind.value} value has no items")
        return dict(self.raw) if self.is_known() else {}

    def attribute(self, name: str) -> Value | None:
        """Attribute of a known object, or None when absent."""
        if self.kind != Kind.OBJECT:
            raise TypeError(f"{self.kind.value} value has no attributes")
        if not self.is_known():
            return None
        return self.raw.get(name)

    def to_python(self) -> Any:
        """Render as plain Python data (JSON-friendly apart from Decimal)."""
        if self.is_null():
            return None
        if self.is_unknown():
            return UNKNOWN_MARKER
        if self.kind in (Kind.LIST, Kind.SET):
            return [v.to_python() for v in self.raw]
        if self.kind in (Kind.MAP, Kind.OBJECT):
            return {k: v.to_python() for k, v in self.raw.items()}
        return self.raw

    def __repr__(self) -> str:
        if self.is_null():
            return f"Value({self.kind.value}, null)"
        if self.is_unknown():
            return f"Value({self.kind.value}, unknown)"
        return f"Value({self.kind.value}, {self.to_python()!r})"


def _same_multiset(left: tuple[Value, ...], right: tuple[Value, ...]) -> bool:
    if len(left) != len(right):
        return False
    remaining = list(right)
    for item in left:
        for i, candidate in enumerate(remaining):
            if item.equal(candidate):
                del remaining[i]
                break
        else:
            return False
    return True


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def null(kind: Kind) -> Value:
    return Value(kind, state=ValueState.NULL)


def unknown(kind: Kind) -> Value:
    return Value(kind, state=ValueState.UNKNOWN)


def bool_value(value: bool) -> Value:
    return Value(Kind.BOOL, bool(value))


def string_value(value: str) -> Value:
    return Value(Kind.STRING, str(value))


def number_value(value: int | float | str | Decimal) -> Value:
    return Value(Kind.NUMBER, Decimal(str(value)))


def int64_value(value: int) -> Value:
    return Value(Kind.INT64, int(value))


def float64_value(value: float) -> Value:
    return Value(Kind.FLOAT64, float(value))


def list_value(elements: Iterable[Value]) -> Value:
    return Value(Kind.LIST, tuple(elements))


def set_value(elements: Iterable[Value]) -> Value:
    """Build a set; duplicate elements are collapsed, first occurrence kept."""
    unique: list[Value] = []
    for element in elements:
        if not any(element.equal(existing) for existing in unique):
            unique.append(element)
    return Value(Kind.SET, tuple(unique))


def map_value(entries: Mapping[str, Value]) -> Value:
    return Value(Kind.MAP, dict(entries))


def object_value(attributes: Mapping[str, Value]) -> Value:
    return Value(Kind.OBJECT, dict(attributes))
