"""Affected-path tracking engine: the heart of change detection.

A consumer reads a snapshot through a tracked view. Every key the view
hands out is recorded in an AffectedPaths record, keyed by the identity of
the snapshot it was read from. On the next round, is_deep_changed() walks
only the recorded keys, so changes in regions the consumer never read do
not count as changes.

Both records are plain per-cycle objects: the consumer creates a fresh
AffectedPaths for each resolve and clears its ComparisonCache before each
comparison pass.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Iterator

from snapstate._errors import StaleAffectedPathsError
from snapstate.snapshot import Snapshot, SnapshotList, is_snapshot


class _Marker:
    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


# Recorded when the consumer depends on which keys exist (iteration, len).
KEYS = _Marker("KEYS")

# Stands in for a key absent from a snapshot during comparison.
_MISSING = _Marker("MISSING")


class AffectedPaths:
    """Identity-keyed record of the keys read from each snapshot.

    ``root`` is the snapshot the record was taken against. Entries hold a
    strong reference to their snapshot so ids stay unique for the lifetime
    of the record.
    """

    __slots__ = ("root", "_entries")

    def __init__(self, root: object = None) -> None:
        self.root = root
        self._entries: dict[int, tuple[object, set]] = {}

    def record(self, obj: object, key: Any) -> None:
        entry = self._entries.get(id(obj))
        if entry is None:
            entry = self._entries[id(obj)] = (obj, set())
        entry[1].add(key)

    def get(self, obj: object) -> frozenset | None:
        """Keys read from obj, or None if nothing was read from it."""
        entry = self._entries.get(id(obj))
        return frozenset(entry[1]) if entry is not None else None

    def __contains__(self, obj: object) -> bool:
        return id(obj) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __repr__(self) -> str:
        paths = {repr(obj): sorted(map(repr, keys)) for obj, keys in self._entries.values()}
        return f"AffectedPaths({paths!r})"


class ComparisonCache:
    """Memo of is_deep_changed results keyed by (prev, next) identity."""

    __slots__ = ("_results",)

    def __init__(self) -> None:
        self._results: dict[int, tuple[object, object, bool]] = {}

    def get(self, prev: object, nxt: object) -> bool | None:
        hit = self._results.get(id(prev))
        if hit is not None and hit[1] is nxt:
            return hit[2]
        return None

    def put(self, prev: object, nxt: object, changed: bool) -> None:
        self._results[id(prev)] = (prev, nxt, changed)

    def __len__(self) -> int:
        return len(self._results)

    def clear(self) -> None:
        self._results.clear()


# --- Tracked views ---


class TrackedMapping(Mapping):
    """Read-only view of a Snapshot that records every key read."""

    __slots__ = ("_target", "_affected", "_views")

    def __init__(self, target: Snapshot, affected: AffectedPaths, views: dict) -> None:
        self._target = target
        self._affected = affected
        self._views = views

    def __getitem__(self, key: Any) -> Any:
        self._affected.record(self._target, key)
        return _track(self._target[key], self._affected, self._views)

    def __iter__(self) -> Iterator[Any]:
        self._affected.record(self._target, KEYS)
        return iter(self._target)

    def __len__(self) -> int:
        self._affected.record(self._target, KEYS)
        return len(self._target)

    def __contains__(self, key: object) -> bool:
        self._affected.record(self._target, key)
        return key in self._target

    def __repr__(self) -> str:
        return f"TrackedMapping({self._target!r})"


class TrackedSequence(Sequence):
    """Read-only view of a SnapshotList that records every index read."""

    __slots__ = ("_target", "_affected", "_views")

    def __init__(self, target: SnapshotList, affected: AffectedPaths, views: dict) -> None:
        self._target = target
        self._affected = affected
        self._views = views

    def __getitem__(self, index):
        if isinstance(index, slice):
            self._affected.record(self._target, KEYS)
            positions = range(*index.indices(len(self._target)))
            return [self[i] for i in positions]
        if index < 0:
            # Position depends on the length.
            self._affected.record(self._target, KEYS)
            index += len(self._target)
            if index < 0:
                raise IndexError("SnapshotList index out of range")
        self._affected.record(self._target, index)
        return _track(self._target[index], self._affected, self._views)

    def __len__(self) -> int:
        self._affected.record(self._target, KEYS)
        return len(self._target)

    def __iter__(self) -> Iterator[Any]:
        self._affected.record(self._target, KEYS)
        for index in range(len(self._target)):
            yield self[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Sequence) and not isinstance(other, (str, bytes)):
            return list(self) == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"TrackedSequence({self._target!r})"


def _track(value: Any, affected: AffectedPaths, views: dict) -> Any:
    if not is_snapshot(value):
        return value
    entry = views.get(id(value))
    if entry is not None:
        return entry[1]
    if isinstance(value, Snapshot):
        view = TrackedMapping(value, affected, views)
    else:
        view = TrackedSequence(value, affected, views)
    views[id(value)] = (value, view)
    return view


def track(value: Any, affected: AffectedPaths, views: dict | None = None) -> Any:
    """Wrap a snapshot so reads through it are recorded in ``affected``.

    Scalars are returned unchanged. ``views`` caches one view per nested
    snapshot, so repeated reads of the same subtree return the same view.
    """
    return _track(untrack(value), affected, {} if views is None else views)


def untrack(value: Any) -> Any:
    """Return the snapshot behind a tracked view (or value itself)."""
    if isinstance(value, (TrackedMapping, TrackedSequence)):
        return value._target
    return value


# --- Comparison ---


def _lookup(obj: Snapshot | SnapshotList, key: Any) -> Any:
    if isinstance(obj, Snapshot):
        return obj._data.get(key, _MISSING)
    if isinstance(key, int) and 0 <= key < len(obj._items):
        return obj._items[key]
    return _MISSING


def _keys_changed(prev: Snapshot | SnapshotList, nxt: Snapshot | SnapshotList) -> bool:
    if isinstance(prev, Snapshot):
        return list(prev._data) != list(nxt._data)
    return len(prev._items) != len(nxt._items)


def _changed(prev: Any, nxt: Any, affected: AffectedPaths, cache: ComparisonCache | None,
             assume_changed: bool) -> bool:
    if prev is nxt:
        return False
    if type(prev) is not type(nxt):
        return True
    if not is_snapshot(prev):
        return prev != nxt

    used = affected.get(prev)
    if used is None:
        # Reached but never looked into.
        return assume_changed

    if cache is not None:
        hit = cache.get(prev, nxt)
        if hit is not None:
            return hit

    changed = False
    for key in used:
        if key is KEYS:
            changed = _keys_changed(prev, nxt)
        else:
            changed = _changed(_lookup(prev, key), _lookup(nxt, key), affected, cache, True)
        if changed:
            break

    if cache is not None:
        cache.put(prev, nxt, changed)
    return changed


def is_deep_changed(
    prev: Any,
    nxt: Any,
    affected: AffectedPaths,
    cache: ComparisonCache | None = None,
) -> bool:
    """Did anything the consumer read from ``prev`` change in ``nxt``?

    Only keys recorded in ``affected`` are compared. An untouched root is
    unchanged; a nested snapshot that was reached but never read from
    counts as changed unless it is the identical object.

    Raises StaleAffectedPathsError if ``affected`` was recorded against a
    different snapshot than ``prev``.
    """
    prev, nxt = untrack(prev), untrack(nxt)
    if affected.root is not None and affected.root is not prev:
        raise StaleAffectedPathsError(
            f"affected paths were recorded on {affected.root!r}, not {prev!r}"
        )
    return _changed(prev, nxt, affected, cache, False)
