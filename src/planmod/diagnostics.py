"""Operator-facing warnings and errors collected during reconciliation."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .path import Path


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True, eq=False)
class Diagnostic:
    """
    A single warning or error.

    Attributes:
        severity: ERROR halts the plan once the pass completes; WARNING is
            reported and the plan proceeds
        summary: Short description
        detail: Longer explanation for the operator
        path: Attribute the diagnostic is about, None for resource-level ones
    """

    severity: Severity
    summary: str
    detail: str
    path: Path | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Diagnostic):
            return NotImplemented
        return (
            self.severity == other.severity
            and self.summary == other.summary
            and self.detail == other.detail
            and self.path == other.path
        )

    __hash__ = None  # type: ignore[assignment]

    def as_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "summary": self.summary,
            "detail": self.detail,
            "path": str(self.path) if self.path is not None else None,
        }


def error(summary: str, detail: str, path: Path | None = None) -> Diagnostic:
    return Diagnostic(Severity.ERROR, summary, detail, path)


def warning(summary: str, detail: str, path: Path | None = None) -> Diagnostic:
    return Diagnostic(Severity.WARNING, summary, detail, path)


class Diagnostics:
    """
    Ordered collection of diagnostics.

    Appending a diagnostic equal to one already present is a no-op, so the
    same problem reported from several places shows up once.
    """

    def __init__(self, diagnostics: Iterable[Diagnostic] = ()) -> None:
        self._items: list[Diagnostic] = []
        self.extend(diagnostics)

    def append(self, diagnostic: Diagnostic) -> None:
        if diagnostic not in self._items:
            self._items.append(diagnostic)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.append(diagnostic)

    def add_error(self, summary: str, detail: str) -> None:
        self.append(error(summary, detail))

    def add_warning(self, summary: str, detail: str) -> None:
        self.append(warning(summary, detail))

    def add_attribute_error(self, path: Path, summary: str, detail: str) -> None:
        self.append(error(summary, detail, path))

    def add_attribute_warning(self, path: Path, summary: str, detail: str) -> None:
        self.append(warning(summary, detail, path))

    def contains(self, diagnostic: Diagnostic) -> bool:
        return diagnostic in self._items

    def has_error(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self._items)

    def errors(self) -> list[Diagnostic]:
        return [d for d in self._items if d.severity == Severity.ERROR]

    def warnings(self) -> list[Diagnostic]:
        return [d for d in self._items if d.severity == Severity.WARNING]

    @property
    def error_count(self) -> int:
        return len(self.errors())

    @property
    def warning_count(self) -> int:
        return len(self.warnings())

    def to_list(self) -> list[dict[str, Any]]:
        return [d.as_dict() for d in self._items]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, diagnostic: object) -> bool:
        return diagnostic in self._items

    def __getitem__(self, index: int) -> Diagnostic:
        return self._items[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Diagnostics):
            return self._items == other._items
        if isinstance(other, list):
            return self._items == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Diagnostics({self._items!r})"
