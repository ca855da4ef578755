"""Immutable snapshots: structural copies of a container at one version.

A Snapshot is a read-only Mapping, a SnapshotList a read-only Sequence.
Nested containers appear as their own snapshots, so an unchanged subtree
is shared by reference between consecutive snapshots of its ancestors.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Iterator


class Snapshot(Mapping):
    """Read-only mapping snapshot of a ReactiveDict."""

    __slots__ = ("_data",)

    def __init__(self, data: dict[Any, Any]) -> None:
        self._data = data

    def __getitem__(self, key: Any) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"Snapshot({self._data!r})"


class SnapshotList(Sequence):
    """Read-only sequence snapshot of a ReactiveList."""

    __slots__ = ("_items",)

    def __init__(self, items: tuple[Any, ...]) -> None:
        self._items = items

    def __getitem__(self, index):
        if isinstance(index, slice):
            return SnapshotList(self._items[index])
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SnapshotList):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return self._items == tuple(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"SnapshotList({list(self._items)!r})"


def is_snapshot(value: object) -> bool:
    return isinstance(value, (Snapshot, SnapshotList))
