"""Sequential runner for heterogeneous handlers.

Runs an ordered handler list one at a time, front to back. Each handler
may complete synchronously, through a ``done(error, result)``
continuation, or by returning an awaitable; the runner folds all three
into one outcome: the final result, or the first error raised.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections import deque
from functools import partial
from typing import Any, Awaitable, Callable, Iterable

from projectcore.core.handler import CallConvention, Handler, wrap_handler
from projectcore.errors import (
    AmbiguousCompletionError,
    DoubleCompletionError,
    HandlerError,
)
from projectcore.utils import spawn

logger = logging.getLogger(__name__)

Reporter = Callable[[BaseException], None]
Callback = Callable[[BaseException | None, Any], Any]


def log_report(error: BaseException) -> None:
    """Default reporter: errors with no caller left to receive them are logged."""
    logger.error("Unhandled pipeline error: %s", error, exc_info=error)


def attach_callback(task: asyncio.Future, callback: Callback, report: Reporter) -> None:
    """Invoke ``callback(error, result)`` once *task* settles.

    Exceptions raised by the callback go to *report*. Attaching a callback
    also marks the task's exception as retrieved.
    """

    def _deliver(fut: asyncio.Future) -> None:
        if fut.cancelled():
            return
        error = fut.exception()
        try:
            if error is not None:
                ret = callback(error, None)
            else:
                ret = callback(None, fut.result())
            if inspect.isawaitable(ret):
                track_awaitable(ret, report)
        except Exception as exc:
            report(exc)

    task.add_done_callback(_deliver)


def track_awaitable(awaitable: Awaitable[Any], report: Reporter) -> asyncio.Future:
    """Schedule *awaitable* and send its failure, if any, to *report*."""
    future = asyncio.ensure_future(awaitable)

    def _done(fut: asyncio.Future) -> None:
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            report(exc)

    future.add_done_callback(_done)
    return future


class _Continuation:
    """The ``done`` callable handed to a continuation-style handler.

    Settles its step at most once. Later calls are reported as double
    completions; a call made while the handler's awaitable is pending
    fails the step as ambiguous.
    """

    def __init__(self, handler: Handler, loop: asyncio.AbstractEventLoop, report: Reporter):
        self._handler = handler
        self._loop = loop
        self._report = report
        self._thread = threading.get_ident()
        self.future: asyncio.Future = loop.create_future()
        self.calls = 0
        self.deferred = False
        self.closed = False
        self.error_result: Any = None

    def __call__(self, error: Any = None, result: Any = None) -> None:
        self.calls += 1
        if threading.get_ident() == self._thread:
            self._settle(error, result)
        else:
            self._loop.call_soon_threadsafe(self._settle, error, result)

    def _settle(self, error: Any, result: Any) -> None:
        if self.closed or self.future.done():
            self._report(DoubleCompletionError(self._handler))
            return
        if self.deferred:
            self.future.set_exception(AmbiguousCompletionError(self._handler))
            return
        if error:
            if not isinstance(error, BaseException):
                error = HandlerError(error)
            self.error_result = result
            self.future.set_exception(error)
        else:
            self.future.set_result(result)

    def close(self) -> None:
        self.closed = True

    def discard(self) -> None:
        """Close without awaiting, marking any stored exception as retrieved."""
        self.closed = True
        if self.future.done() and not self.future.cancelled():
            self.future.exception()


def _close_awaitable(awaitable: Any) -> None:
    if inspect.iscoroutine(awaitable):
        awaitable.close()


class SequentialRunner:
    """Execute handlers one at a time, threading a single value through them.

    Each handler is invoked as ``handler(*args, [value,] [done])``:
    ``value`` only when ``pipe`` is set, ``done`` only for handlers whose
    arity asks for a continuation. A runner owns a private copy of the
    handler list and runs once.

    Args:
        handlers: Callables or :class:`Handler` objects, in execution order.
        args: Leading positional arguments passed to every handler.
        pipe: Pass the running value to each handler and take its return
            value as the next one.
        reporter: Receives errors that have no caller left (double
            completions, failing callbacks). Defaults to logging them.
        name: Label used in debug logs.
    """

    def __init__(
        self,
        handlers: Iterable[Any],
        args: Iterable[Any] = (),
        *,
        pipe: bool = False,
        reporter: Reporter | None = None,
        name: str | None = None,
    ) -> None:
        self._queue: deque[Handler] = deque(wrap_handler(h) for h in handlers)
        self._args = tuple(args)
        self._pipe = pipe
        self._argc = len(self._args) + (1 if pipe else 0)
        self._report = reporter or log_report
        self._started = False
        self.name = name or "series"
        self.executed = 0
        self.last_result: Any = None

    @property
    def pending(self) -> int:
        """Number of handlers not yet started."""
        return len(self._queue)

    async def run(self, value: Any = None) -> Any:
        """Run every handler and return the final value.

        Raises:
            RuntimeError: If this runner has already run.
            Exception: The first error reported by a handler. Later
                handlers are skipped.
        """
        if self._started:
            raise RuntimeError(f"runner {self.name} has already run")
        self._started = True
        self.last_result = value

        logger.debug("%s: running %d handler(s)", self.name, len(self._queue))
        while self._queue:
            handler = self._queue.popleft()
            self.executed += 1
            logger.debug("%s: run %s", self.name, handler)
            self.last_result = await self._invoke(handler, self.last_result)
            # Yield after every handler, including ones that never suspended.
            await asyncio.sleep(0)

        logger.debug("%s: completed after %d handler(s)", self.name, self.executed)
        return self.last_result

    def start(self, value: Any = None, callback: Callback | None = None) -> asyncio.Task:
        """Schedule :meth:`run` on the running loop and return its task.

        ``callback(error, result)``, when given, is invoked exactly once
        after the task settles.
        """
        task = spawn(self.run(value))
        if callback is not None:
            attach_callback(task, callback, self._report)
        return task

    async def _invoke(self, handler: Handler, value: Any) -> Any:
        loop = asyncio.get_running_loop()
        args = self._args + ((value,) if self._pipe else ())

        done = None
        if handler.convention(self._argc) is CallConvention.CONTINUATION:
            done = _Continuation(handler, loop, self._report)

        try:
            returned = handler(*args, done) if done is not None else handler(*args)
        except Exception:
            if done is not None:
                done.discard()
            raise

        if inspect.isawaitable(returned):
            return await self._await_deferred(handler, returned, done)

        if done is None:
            return returned

        try:
            return await done.future
        except Exception:
            if done.error_result is not None:
                self.last_result = done.error_result
            raise
        finally:
            done.close()

    async def _await_deferred(
        self, handler: Handler, awaitable: Awaitable[Any], done: _Continuation | None
    ) -> Any:
        if done is None:
            return await awaitable

        if done.calls:
            _close_awaitable(awaitable)
            done.discard()
            raise AmbiguousCompletionError(handler)

        task = asyncio.ensure_future(awaitable)
        done.deferred = True
        await asyncio.wait({task, done.future}, return_when=asyncio.FIRST_COMPLETED)

        if done.future.done():
            task.add_done_callback(partial(self._late_completion, handler))
            done.close()
            raise done.future.exception()

        done.close()
        return task.result()

    def _late_completion(self, handler: Handler, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        task.exception()
        self._report(DoubleCompletionError(handler))
