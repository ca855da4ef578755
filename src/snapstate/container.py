"""Reactive containers: structured state that reports every mutation.

Wrapping a dict or list with create() yields a ReactiveDict or ReactiveList.
Nested dicts and lists are wrapped into child containers on assignment, and
each child carries its parent's invalidation callback in its listener set,
so a mutation at any depth bumps the version of every ancestor.

Each container caches its last snapshot together with the version it was
taken at. snapshot() returns the cached object until the version moves.

Ownership is strictly one parent per child: assigning a structured value
(including a live container) always builds a fresh child container from
its current fields.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Iterator

from snapstate._errors import CyclicStateError
from snapstate._tracking import untrack
from snapstate.snapshot import Snapshot, SnapshotList

if TYPE_CHECKING:
    from snapstate.source import MutableSource

logger = logging.getLogger("snapstate.container")

Listener = Callable[[], None]
Disposer = Callable[[], None]


class _Container:
    """Version counter, listener set and snapshot cache shared by both shapes."""

    __slots__ = ("_version", "_listeners", "_snapshot", "_snapshot_version", "_source")

    def __init__(self) -> None:
        self._version = 0
        # dict as an insertion-ordered set
        self._listeners: dict[Listener, None] = {}
        self._snapshot: Snapshot | SnapshotList | None = None
        self._snapshot_version = -1
        self._source = None

    @property
    def version(self) -> int:
        return self._version

    @property
    def source(self) -> MutableSource:
        """This container's MutableSource, created on first request."""
        if self._source is None:
            from snapstate.source import MutableSource

            self._source = MutableSource(self)
        return self._source

    # --- Listeners ---

    def add_listener(self, listener: Listener) -> None:
        self._listeners[listener] = None

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.pop(listener, None)

    def _increment_version(self) -> None:
        """Bump the version and notify. Doubles as the callback children call."""
        self._version += 1
        # Copy first: listeners may subscribe or unsubscribe during fan-out.
        for listener in list(self._listeners):
            listener()

    # --- Child ownership ---

    def _adopt(self, value: Any, ancestors: set[int] | None = None) -> Any:
        """Turn an incoming value into what gets stored in a field."""
        if not is_structured(value):
            return value
        child = _wrap(value, set() if ancestors is None else ancestors)
        child.add_listener(self._increment_version)
        return child

    def _release(self, value: Any) -> None:
        """Detach a child leaving its field slot."""
        if isinstance(value, _Container):
            value.remove_listener(self._increment_version)

    def _populate(self, initial: Any, ancestors: set[int]) -> None:
        key = id(initial)
        if key in ancestors:
            raise CyclicStateError(f"{type(initial).__name__} contains itself")
        ancestors.add(key)
        try:
            self._fill(initial, ancestors)
        finally:
            ancestors.discard(key)

    def _fill(self, initial: Any, ancestors: set[int]) -> None:
        raise NotImplementedError

    # --- Snapshots ---

    def snapshot(self) -> Snapshot | SnapshotList:
        """Immutable copy of the current state, identical until the next mutation."""
        if self._snapshot_version == self._version:
            return self._snapshot
        snap = self._build_snapshot()
        self._snapshot = snap
        self._snapshot_version = self._version
        logger.debug("Built snapshot of %s at version %d", type(self).__name__, self._version)
        return snap

    def _build_snapshot(self) -> Snapshot | SnapshotList:
        raise NotImplementedError


def _freeze(value: Any) -> Any:
    return value.snapshot() if isinstance(value, _Container) else value


class ReactiveDict(_Container):
    """A mapping container. Fields are keys."""

    __slots__ = ("_data",)

    def __init__(self, initial: Mapping | ReactiveDict | None = None) -> None:
        super().__init__()
        self._data: dict[Any, Any] = {}
        if initial is not None:
            self._populate(untrack(initial), set())

    def _fill(self, initial, ancestors):
        for key, value in initial.items():
            self._data[key] = self._adopt(value, ancestors)

    def _build_snapshot(self) -> Snapshot:
        return Snapshot({key: _freeze(value) for key, value in self._data.items()})

    # --- Read operations ---

    def get(self, key: Any, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __getitem__(self, key: Any) -> Any:
        return self._data[key]

    def has(self, key: Any) -> bool:
        return key in self._data

    __contains__ = has

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data)

    def keys(self):
        return self._data.keys()

    def values(self):
        return self._data.values()

    def items(self):
        return self._data.items()

    # --- Write operations ---

    def set(self, key: Any, value: Any) -> None:
        """Store value under key, wrapping structured values, then notify."""
        stored = self._adopt(value)
        self._release(self._data.get(key))
        self._data[key] = stored
        self._increment_version()

    __setitem__ = set

    def delete(self, key: Any) -> None:
        """Remove key, detaching its child container, then notify."""
        self._release(self._data[key])
        del self._data[key]
        self._increment_version()

    __delitem__ = delete

    def pop(self, key: Any, *default: Any) -> Any:
        if key not in self._data:
            if default:
                return default[0]
            raise KeyError(key)
        value = self._data[key]
        self.delete(key)
        return value

    def setdefault(self, key: Any, default: Any = None) -> Any:
        if key not in self._data:
            self.set(key, default)
        return self._data[key]

    def update(self, other: Mapping | None = None, **kwargs: Any) -> None:
        """Assign several keys under a single version bump."""
        incoming = dict(untrack(other).items()) if other else {}
        incoming.update(kwargs)
        if not incoming:
            return
        for key, value in incoming.items():
            stored = self._adopt(value)
            self._release(self._data.get(key))
            self._data[key] = stored
        self._increment_version()

    def clear(self) -> None:
        if not self._data:
            return
        for value in self._data.values():
            self._release(value)
        self._data.clear()
        self._increment_version()

    def __repr__(self) -> str:
        return f"ReactiveDict({self._data!r}, version={self._version})"


class ReactiveList(_Container):
    """A list container. Fields are indexes."""

    __slots__ = ("_items",)

    def __init__(self, initial: list | ReactiveList | SnapshotList | None = None) -> None:
        super().__init__()
        self._items: list[Any] = []
        if initial is not None:
            self._populate(untrack(initial), set())

    def _fill(self, initial, ancestors):
        for value in initial:
            self._items.append(self._adopt(value, ancestors))

    def _build_snapshot(self) -> SnapshotList:
        return SnapshotList(tuple(_freeze(value) for value in self._items))

    # --- Read operations ---

    def get(self, index: int, default: Any = None) -> Any:
        try:
            return self._items[index]
        except IndexError:
            return default

    def __getitem__(self, index):
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __contains__(self, value: object) -> bool:
        return value in self._items

    def index(self, value: Any) -> int:
        return self._items.index(value)

    # --- Write operations ---

    def set(self, index: int, value: Any) -> None:
        """Store value at index, wrapping structured values, then notify."""
        stored = self._adopt(value)
        self._release(self._items[index])
        self._items[index] = stored
        self._increment_version()

    def __setitem__(self, index, value) -> None:
        if not isinstance(index, slice):
            self.set(index, value)
            return
        old = self._items[index]
        stored = [self._adopt(v) for v in value]
        try:
            self._items[index] = stored
        except ValueError:
            # Extended slice of the wrong length: nothing was replaced.
            for child in stored:
                self._release(child)
            raise
        for child in old:
            self._release(child)
        self._increment_version()

    def delete(self, index: int) -> None:
        """Remove the item at index, detaching its child container, then notify."""
        self._release(self._items[index])
        del self._items[index]
        self._increment_version()

    def __delitem__(self, index) -> None:
        if not isinstance(index, slice):
            self.delete(index)
            return
        for old in self._items[index]:
            self._release(old)
        del self._items[index]
        self._increment_version()

    def append(self, value: Any) -> None:
        self._items.append(self._adopt(value))
        self._increment_version()

    def extend(self, values) -> None:
        """Append several values under a single version bump."""
        self._items.extend([self._adopt(v) for v in values])
        self._increment_version()

    def insert(self, index: int, value: Any) -> None:
        self._items.insert(index, self._adopt(value))
        self._increment_version()

    def pop(self, index: int = -1) -> Any:
        value = self._items[index]
        self.delete(index)
        return value

    def remove(self, value: Any) -> None:
        self.delete(self._items.index(value))

    def clear(self) -> None:
        if not self._items:
            return
        for value in self._items:
            self._release(value)
        self._items.clear()
        self._increment_version()

    def __repr__(self) -> str:
        return f"ReactiveList({self._items!r}, version={self._version})"


Container = ReactiveDict | ReactiveList


def is_structured(value: object) -> bool:
    """Would assigning value into a container wrap it in a child container?"""
    return isinstance(value, (Mapping, list, SnapshotList, _Container)) or (
        untrack(value) is not value
    )


def _wrap(value: Any, ancestors: set[int]) -> Container:
    value = untrack(value)
    if isinstance(value, (Mapping, ReactiveDict)):
        container: Container = ReactiveDict()
    else:
        container = ReactiveList()
    container._populate(value, ancestors)
    return container


def create(initial: Any = None) -> Container:
    """Wrap a dict or list (recursively) into a reactive container at version 0.

    Usage:
        state = create({"count": 0, "nested": {"x": 1}})
        state["count"] = 1
        state["nested"]["x"] = 2
        snapshot(state)  # Snapshot({'count': 1, 'nested': Snapshot({'x': 2})})
    """
    if initial is None:
        initial = {}
    if not is_structured(initial):
        raise TypeError(f"cannot create a container from {type(initial).__name__}")
    return _wrap(initial, set())


def snapshot(container: Container) -> Snapshot | SnapshotList:
    return container.snapshot()


def subscribe(container: Container, callback: Listener) -> Disposer:
    """Call callback after every mutation of container or its descendants.

    Returns a function that removes it.
    """
    container.add_listener(callback)

    def _unsubscribe() -> None:
        container.remove_listener(callback)

    return _unsubscribe


def get_version(container: Container) -> int:
    return container.version
