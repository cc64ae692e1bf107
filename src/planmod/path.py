"""Attribute paths and schema-level path expressions.

A ``Path`` addresses one concrete position in a value tree, e.g.
``rules[0].ports["http"]``. A ``PathExpression`` is the schema-level
pattern for a position: element steps may be wildcards so one expression
matches every element of a collection.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .values import Value


class StepKind(str, Enum):
    ATTRIBUTE_NAME = "attribute_name"
    LIST_INDEX = "list_index"
    MAP_KEY = "map_key"
    SET_VALUE = "set_value"
    PARENT = "parent"


@dataclass(frozen=True, eq=False)
class PathStep:
    """
    One step of a path.

    ``key`` is the attribute name, list index, map key or set element
    value. In expressions a key of ``ANY`` matches every key of the same
    step kind.
    """

    kind: StepKind
    key: Any

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathStep):
            return NotImplemented
        if self.kind != other.kind:
            return False
        if self.key is ANY or other.key is ANY:
            return self.key is other.key
        return bool(self.key == other.key)

    __hash__ = None  # type: ignore[assignment]

    def matches(self, step: PathStep) -> bool:
        """Whether this (possibly wildcard) step matches a concrete step."""
        if self.kind != step.kind:
            return False
        return self.key is ANY or bool(self.key == step.key)

    def __str__(self) -> str:
        if self.kind == StepKind.ATTRIBUTE_NAME:
            return str(self.key)
        if self.kind == StepKind.PARENT:
            return "<"
        if self.key is ANY:
            return "[*]"
        if self.kind == StepKind.LIST_INDEX:
            return f"[{self.key}]"
        if self.kind == StepKind.MAP_KEY:
            return f'["{self.key}"]'
        return f"[{json.dumps(self.key.to_python(), default=str)}]"


class _Any:
    def __repr__(self) -> str:
        return "ANY"


ANY: Any = _Any()
"""Wildcard key for expression steps."""


def _render(steps: tuple[PathStep, ...]) -> str:
    out = ""
    for step in steps:
        if step.kind in (StepKind.ATTRIBUTE_NAME, StepKind.PARENT):
            out = f"{out}.{step}" if out else str(step)
        else:
            out += str(step)
    return out


@dataclass(frozen=True, eq=False)
class Path:
    """Concrete location of a value within a resource."""

    steps: tuple[PathStep, ...] = ()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Path):
            return NotImplemented
        return len(self.steps) == len(other.steps) and all(
            a == b for a, b in zip(self.steps, other.steps, strict=True)
        )

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def root(cls, name: str) -> Path:
        return cls((PathStep(StepKind.ATTRIBUTE_NAME, name),))

    def _with(self, step: PathStep) -> Path:
        return Path((*self.steps, step))

    def at_name(self, name: str) -> Path:
        return self._with(PathStep(StepKind.ATTRIBUTE_NAME, name))

    def at_list_index(self, index: int) -> Path:
        return self._with(PathStep(StepKind.LIST_INDEX, index))

    def at_map_key(self, key: str) -> Path:
        return self._with(PathStep(StepKind.MAP_KEY, key))

    def at_set_value(self, value: Value) -> Path:
        return self._with(PathStep(StepKind.SET_VALUE, value))

    def parent(self) -> Path:
        return Path(self.steps[:-1])

    def last_step(self) -> PathStep | None:
        return self.steps[-1] if self.steps else None

    def is_empty(self) -> bool:
        return not self.steps

    def has_set_step(self) -> bool:
        return any(step.kind == StepKind.SET_VALUE for step in self.steps)

    def expression(self) -> PathExpression:
        """Exact expression matching only this path."""
        return PathExpression(self.steps)

    def __str__(self) -> str:
        return _render(self.steps)

    def __repr__(self) -> str:
        return f"Path({self})"


@dataclass(frozen=True, eq=False)
class PathExpression:
    """
    Schema-level path pattern; element steps may be wildcards.

    A relative expression (``PathExpression.relative()``) starts at the
    attribute it is given to and may step up with ``at_parent()``. It is
    anchored with ``merge()`` and ``resolve()`` before it can match.
    """

    steps: tuple[PathStep, ...] = ()
    relative: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathExpression):
            return NotImplemented
        return (
            self.relative == other.relative
            and len(self.steps) == len(other.steps)
            and all(a == b for a, b in zip(self.steps, other.steps, strict=True))
        )

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def root(cls, name: str) -> PathExpression:
        return cls((PathStep(StepKind.ATTRIBUTE_NAME, name),))

    @classmethod
    def relative_to_current(cls) -> PathExpression:
        return cls(relative=True)

    def _with(self, step: PathStep) -> PathExpression:
        return PathExpression((*self.steps, step), self.relative)

    def is_root(self) -> bool:
        return not self.relative

    def at_name(self, name: str) -> PathExpression:
        return self._with(PathStep(StepKind.ATTRIBUTE_NAME, name))

    def at_parent(self) -> PathExpression:
        return self._with(PathStep(StepKind.PARENT, None))

    def at_any_list_index(self) -> PathExpression:
        return self._with(PathStep(StepKind.LIST_INDEX, ANY))

    def at_any_map_key(self) -> PathExpression:
        return self._with(PathStep(StepKind.MAP_KEY, ANY))

    def at_any_set_value(self) -> PathExpression:
        return self._with(PathStep(StepKind.SET_VALUE, ANY))

    def merge(self, other: PathExpression) -> PathExpression:
        """Anchor a relative expression at this one. Root expressions are returned as-is."""
        if other.is_root():
            return other
        return PathExpression((*self.steps, *other.steps), self.relative)

    def resolve(self) -> PathExpression:
        """Apply parent steps. Stepping above the first step leaves an empty expression."""
        steps: list[PathStep] = []
        for step in self.steps:
            if step.kind == StepKind.PARENT:
                if steps:
                    steps.pop()
            else:
                steps.append(step)
        return PathExpression(tuple(steps), self.relative)

    def matches(self, path: Path) -> bool:
        """Whether a concrete path is matched by this expression."""
        resolved = self.resolve()
        if len(resolved.steps) != len(path.steps):
            return False
        return all(mine.matches(theirs) for mine, theirs in zip(resolved.steps, path.steps, strict=True))

    def __str__(self) -> str:
        return _render(self.steps)

    def __repr__(self) -> str:
        return f"PathExpression({self})"
