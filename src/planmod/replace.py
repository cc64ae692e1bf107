"""Attribute paths whose change forces the resource to be replaced."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .path import Path


class ReplacePaths:
    """Insertion-ordered set of paths; adding a path already present is a no-op."""

    def __init__(self, paths: Iterable[Path] = ()) -> None:
        self._paths: list[Path] = []
        self.extend(paths)

    def add(self, path: Path) -> None:
        if path not in self._paths:
            self._paths.append(path)

    def extend(self, paths: Iterable[Path]) -> None:
        for path in paths:
            self.add(path)

    def to_list(self) -> list[str]:
        return [str(p) for p in self._paths]

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __iter__(self) -> Iterator[Path]:
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __bool__(self) -> bool:
        return bool(self._paths)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ReplacePaths):
            return self._paths == other._paths
        if isinstance(other, list):
            return self._paths == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ReplacePaths({self.to_list()!r})"
