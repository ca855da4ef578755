"""Textual integration for snapstate. Opt-in: requires textual.

bind() is a host subscription source: it resolves the container's snapshot
through a Consumer after every mutation and re-renders only when the
snapshot it resolves to is a different object. Guard + NoMatches +
thread-marshal are enforced here, not at callsites.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable

from textual.css.query import NoMatches

from snapstate._tracking import untrack
from snapstate.consumer import bind_consumer

logger = logging.getLogger("snapstate.textual")

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend bound renders during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


class Binding:
    """Disposable link between a container and a render function."""

    __slots__ = ("_app", "_consumer", "_render_fn", "_rendered", "_main", "_disposed")

    def __init__(self, app, container, render_fn: Callable[[Any], None]) -> None:
        self._app = app
        self._consumer = bind_consumer(container)
        self._render_fn = render_fn
        self._rendered = None
        self._main = threading.get_ident()
        self._disposed = False
        self._consumer.subscribe(self.refresh)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def refresh(self) -> None:
        """Render if safe and the resolved snapshot changed. Marshals off-thread calls."""
        if self._disposed or not is_safe(self._app):
            return
        if threading.get_ident() != self._main:
            self._app.call_from_thread(self._render)
        else:
            self._render()

    def _render(self) -> None:
        view = self._consumer.resolve()
        snap = untrack(view)
        if snap is self._rendered:
            logger.debug("Skipped render, no read path changed")
            return
        self._rendered = snap
        try:
            self._render_fn(view)
        except NoMatches:
            pass
        finally:
            self._consumer.commit()

    def dispose(self) -> None:
        self._disposed = True
        self._consumer.dispose()
        logger.info("Disposed binding for %s", getattr(self._render_fn, "__name__", self._render_fn))


def bind(app, container, render_fn: Callable[[Any], None]) -> Binding:
    """Render container state into Textual widgets whenever what was read changes.

    render_fn receives a tracked view of the snapshot. Renders once right
    away (if the app is safe to query), then after each relevant mutation.
    Call .refresh() after pause() or on mount to catch up.

    Usage:
        state = create({"count": 0})
        binding = bind(app, state, lambda s: app.query_one("#count").update(str(s["count"])))
        state["count"] = 1  # re-renders
        binding.dispose()
    """
    binding = Binding(app, container, render_fn)
    logger.info("Bound %s to %s", getattr(render_fn, "__name__", render_fn), type(container).__name__)
    binding.refresh()
    return binding
