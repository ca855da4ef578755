"""Consumption adapter: stable snapshots for identity-comparing consumers.

A Consumer hands out the container's snapshot wrapped in a tracked view and
remembers which keys were read from it. When asked again, it compares the
fresh snapshot with the one it returned last time, but only along the
recorded keys. If none of them changed, the old snapshot comes back (same
object), so a consumer that compares by identity can skip work.

Reads are recorded for the whole usage window: resolve() starts it and
commit() ends it. Only committed reads take part in the next comparison.

Usage:
    state = create({"count": 0, "title": "x"})
    consumer = bind_consumer(state)

    with consumer.read() as view:
        render(view["count"])

    state["title"] = "y"           # never read by the consumer
    with consumer.read() as view:   # same snapshot as before
        ...
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

from snapstate._tracking import AffectedPaths, ComparisonCache, is_deep_changed, track
from snapstate.container import Disposer, Listener
from snapstate.source import MutableSource, get_source

if TYPE_CHECKING:
    from snapstate.container import Container
    from snapstate.snapshot import Snapshot, SnapshotList

logger = logging.getLogger("snapstate.consumer")


class Consumer:
    """Memoization state of one consumer bound to one container."""

    __slots__ = (
        "_source",
        "_previous_snapshot",
        "_previous_affected",
        "_pending_affected",
        "_cache",
        "_disposers",
    )

    def __init__(self, source: MutableSource) -> None:
        self._source = source
        self._previous_snapshot: Snapshot | SnapshotList | None = None
        self._previous_affected: AffectedPaths | None = None
        self._pending_affected: AffectedPaths | None = None
        self._cache = ComparisonCache()
        self._disposers: list[Disposer] = []

    @property
    def source(self) -> MutableSource:
        return self._source

    @property
    def snapshot(self) -> Snapshot | SnapshotList | None:
        """The snapshot last handed out by resolve(), untracked."""
        return self._previous_snapshot

    @property
    def affected(self) -> AffectedPaths | None:
        """Reads committed from the last usage window."""
        return self._previous_affected

    def resolve(self) -> Any:
        """Return a tracked view of the current (or memoized) snapshot."""
        chosen = self._choose(self._source.container.snapshot())
        affected = AffectedPaths(chosen)
        self._pending_affected = affected
        return track(chosen, affected)

    def _choose(self, candidate: Snapshot | SnapshotList) -> Snapshot | SnapshotList:
        previous = self._previous_snapshot
        if previous is candidate:
            return previous
        if previous is not None and self._previous_affected is not None:
            self._cache.clear()
            if not is_deep_changed(previous, candidate, self._previous_affected, self._cache):
                logger.debug("No read path changed at version %d", self._source.get_version())
                return previous
        logger.debug("New snapshot at version %d", self._source.get_version())
        self._previous_snapshot = candidate
        # Recorded reads belong to the old snapshot; keep them from being
        # compared against the new one if resolve() runs again before commit().
        self._previous_affected = None
        return candidate

    def commit(self) -> None:
        """End the usage window of the last resolve(); its reads anchor the next comparison."""
        if self._pending_affected is not None:
            self._previous_affected = self._pending_affected
            self._pending_affected = None

    @contextmanager
    def read(self) -> Iterator[Any]:
        """resolve() on enter, commit() on exit."""
        view = self.resolve()
        try:
            yield view
        finally:
            self.commit()

    def subscribe(self, callback: Listener) -> Disposer:
        """Register callback on the container. Removed again by dispose()."""
        unsubscribe = self._source.subscribe(callback)
        self._disposers.append(unsubscribe)
        return unsubscribe

    def dispose(self) -> None:
        """Unsubscribe every callback and forget the memoized snapshot."""
        for unsubscribe in self._disposers:
            unsubscribe()
        self._disposers.clear()
        self._previous_snapshot = None
        self._previous_affected = None
        self._pending_affected = None
        self._cache.clear()

    def __repr__(self) -> str:
        return f"Consumer({self._source!r})"


def bind_consumer(container: Container) -> Consumer:
    """Create a Consumer with its own memoization state for container."""
    return Consumer(get_source(container))
