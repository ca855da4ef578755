"""Mutable source: the subscription bridge between a container and a host.

A host scheduling loop needs two things from a container: a cheap version
number to decide whether anything happened, and a way to hear about
mutations. MutableSource exposes exactly that and nothing else.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from snapstate.container import Disposer, Listener, subscribe

if TYPE_CHECKING:
    from snapstate.container import Container


class MutableSource:
    """Version and subscription handle for one container."""

    __slots__ = ("_container",)

    def __init__(self, container: Container) -> None:
        self._container = container

    @property
    def container(self) -> Container:
        return self._container

    def get_version(self) -> int:
        return self._container.version

    def subscribe(self, callback: Listener) -> Disposer:
        """Register callback for every mutation. Returns a function that removes it."""
        return subscribe(self._container, callback)

    def __repr__(self) -> str:
        return f"MutableSource({type(self._container).__name__}, version={self.get_version()})"


def get_source(container: Container) -> MutableSource:
    """The container's MutableSource, created on first request."""
    return container.source
