"""snapstate: deeply reactive state with immutable, read-tracked snapshots."""

from importlib.metadata import version as _version

__version__ = _version("snapstate")

from snapstate._errors import CyclicStateError, SnapStateError, StaleAffectedPathsError
from snapstate._tracking import KEYS, AffectedPaths, ComparisonCache, is_deep_changed, track, untrack
from snapstate.snapshot import Snapshot, SnapshotList, is_snapshot
from snapstate.container import (
    ReactiveDict,
    ReactiveList,
    create,
    get_version,
    is_structured,
    snapshot,
    subscribe,
)
from snapstate.source import MutableSource, get_source
from snapstate.consumer import Consumer, bind_consumer
# textual NOT auto-imported, opt-in only

__all__ = [
    "create",
    "snapshot",
    "subscribe",
    "get_version",
    "is_structured",
    "ReactiveDict",
    "ReactiveList",
    "Snapshot",
    "SnapshotList",
    "is_snapshot",
    "MutableSource",
    "get_source",
    "Consumer",
    "bind_consumer",
    "AffectedPaths",
    "ComparisonCache",
    "KEYS",
    "track",
    "untrack",
    "is_deep_changed",
    "SnapStateError",
    "CyclicStateError",
    "StaleAffectedPathsError",
]
