"""In-process event channel.

Listeners are wrapped so a raising listener, or an async listener whose
awaitable fails, reports through the ``error`` event instead of
breaking the emitter. When nobody listens on ``error`` the failure is
logged.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

ERROR_EVENT = "error"

Listener = Callable[..., Any]


@dataclass
class _Registration:
    fn: Listener
    once: bool = False


class EventChannel:
    """Publish/subscribe helper with error isolation."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[_Registration]] = {}
        self._lock = threading.Lock()

    def on(self, event: str, fn: Listener) -> Listener:
        """Register *fn* for every *event*. Returns *fn* for decorator use."""
        return self._add(event, fn, once=False)

    def once(self, event: str, fn: Listener) -> Listener:
        """Register *fn* for the next *event* only."""
        return self._add(event, fn, once=True)

    def _add(self, event: str, fn: Listener, once: bool) -> Listener:
        if not callable(fn):
            raise TypeError(f"listener must be callable, got {type(fn).__name__}")
        with self._lock:
            self._listeners.setdefault(event, []).append(_Registration(fn, once))
        return fn

    def off(self, event: str, fn: Listener | None = None) -> None:
        """Remove *fn* from *event*, or every listener of *event* if omitted."""
        with self._lock:
            if fn is None:
                self._listeners.pop(event, None)
                return
            remaining = [r for r in self._listeners.get(event, []) if r.fn is not fn]
            if remaining:
                self._listeners[event] = remaining
            else:
                self._listeners.pop(event, None)

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener of *event* in registration order.

        Returns True if at least one listener was called. An ``error``
        event with no listeners is logged.
        """
        with self._lock:
            registrations = list(self._listeners.get(event, []))
            if any(r.once for r in registrations):
                self._listeners[event] = [
                    r for r in self._listeners.get(event, []) if not r.once
                ]
                if not self._listeners[event]:
                    del self._listeners[event]

        if not registrations:
            if event == ERROR_EVENT:
                self._log_unhandled(args[0] if args else None)
            return False

        for registration in registrations:
            self.invoke(registration.fn, *args, event=event)
        return True

    def invoke(self, fn: Listener, *args: Any, event: str = "") -> None:
        """Call *fn* with the same error isolation as an event listener."""
        try:
            ret = fn(*args)
        except Exception as exc:
            self._fail(event, exc)
            return

        if inspect.isawaitable(ret):
            self._track(ret, event)

    def _track(self, awaitable: Any, event: str) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._fail(event, RuntimeError("async listener requires a running event loop"))
            return

        future = asyncio.ensure_future(awaitable)

        def _done(fut: asyncio.Future) -> None:
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                self._fail(event, exc)

        future.add_done_callback(_done)

    def _fail(self, event: str, exc: BaseException) -> None:
        if event == ERROR_EVENT:
            # An error listener failed; re-emitting would recurse.
            logger.error("error listener failed: %s", exc, exc_info=exc)
            return
        self.emit(ERROR_EVENT, exc)

    @staticmethod
    def _log_unhandled(exc: Any) -> None:
        if isinstance(exc, BaseException):
            logger.error("Unhandled error event: %s", exc, exc_info=exc)
        else:
            logger.error("Unhandled error event: %s", exc)
