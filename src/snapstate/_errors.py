"""snapstate error hierarchy.

Everyday container misuse raises the builtin errors a dict or list would
(KeyError, IndexError, TypeError). The classes below cover contract
violations specific to reactive state.
"""


class SnapStateError(Exception):
    """Base error for all snapstate operations."""


class CyclicStateError(SnapStateError):
    """A structured value containing itself was introduced into a container."""


class StaleAffectedPathsError(SnapStateError):
    """Affected paths were compared against a snapshot they were not recorded on."""
