"""Two-phase startup coordination.

Extensions contribute ``before``/``init``/``after`` hooks and modules queue
init tasks; :meth:`InitCoordinator.init` runs all hooks, then all tasks,
through a :class:`SequentialRunner`, exactly once.

State machine::

    IDLE --init()--> INITING --success--> INITED
                        |
                        +--failure--> (stays INITING; use a fresh instance)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping
from enum import Enum
from functools import partial
from typing import Any, Callable, Iterable, Iterator

from projectcore.core.events import ERROR_EVENT, EventChannel
from projectcore.core.handler import Handler, wrap_handler
from projectcore.core.loader import load_handlers
from projectcore.core.runner import Callback, SequentialRunner, attach_callback
from projectcore.errors import InitStateError
from projectcore.utils import caller_source_line, running_loop, spawn

logger = logging.getLogger(__name__)

READY_EVENT = "ready"
PHASES = ("before", "init", "after")


class InitState(Enum):
    """Lifecycle of an :class:`InitCoordinator`."""

    IDLE = "idle"
    INITING = "initing"
    INITED = "inited"


def _phase_of(extension: Any, phase: str) -> Any:
    if isinstance(extension, Mapping):
        return extension.get(phase)
    return getattr(extension, phase, None)


class TaskQueue:
    """Ordered init tasks, run after every extension hook."""

    def __init__(self, coordinator: InitCoordinator) -> None:
        self._coordinator = coordinator
        self._handlers: list[Handler] = []

    def add(self, fn: Callable[..., Any]) -> Handler:
        """Queue *fn* as an init task.

        Raises:
            InitStateError: If init has already started.
            TypeError: If *fn* is not callable.
        """
        self._coordinator.check_idle("add init tasks")
        handler = wrap_handler(fn, kind="task", source=caller_source_line())
        logger.debug("init.add: at %s", handler.source)
        self._handlers.append(handler)
        return handler

    def load(self, path: str | os.PathLike[str]) -> list[Handler]:
        """Queue every task loaded from a file or directory.

        Raises:
            InitStateError: If init has already started.
            LoadError: If *path* cannot be loaded.
        """
        self._coordinator.check_idle("load init tasks")
        handlers = load_handlers(path)
        for handler in handlers:
            self.add(handler)
        return handlers

    def __iter__(self) -> Iterator[Handler]:
        return iter(list(self._handlers))

    def __len__(self) -> int:
        return len(self._handlers)


class InitCoordinator:
    """Runs extension hooks and init tasks once, against a shared context.

    Every hook and task is called with ``(context, *params)``, plus a
    trailing ``done`` continuation when its arity asks for one.

    Args:
        context: Object handed to every hook and task as first argument.
        events: Channel used for the ``ready`` and ``error`` events.
    """

    def __init__(self, context: Any, events: EventChannel) -> None:
        self._context = context
        self._events = events
        self._hooks: dict[str, list[Handler]] = {phase: [] for phase in PHASES}
        self.state = InitState.IDLE
        self.tasks = TaskQueue(self)

    @property
    def inited(self) -> bool:
        return self.state is InitState.INITED

    @property
    def initing(self) -> bool:
        return self.state is InitState.INITING

    @property
    def hooks(self) -> dict[str, list[Handler]]:
        """Snapshot of the registered extension hooks by phase."""
        return {phase: list(handlers) for phase, handlers in self._hooks.items()}

    def _report(self, error: BaseException) -> None:
        self._events.emit(ERROR_EVENT, error)

    def check_idle(self, action: str) -> None:
        """Raise InitStateError unless the coordinator is still IDLE."""
        if self.state is InitState.INITED:
            raise InitStateError(
                self.state, f"you cannot {action} after the project has been inited"
            )
        if self.state is InitState.INITING:
            raise InitStateError(
                self.state, f"you cannot {action} while the project is initing"
            )

    def extends(
        self,
        extension: Any = None,
        *,
        before: Callable[..., Any] | None = None,
        init: Callable[..., Any] | None = None,
        after: Callable[..., Any] | None = None,
    ) -> None:
        """Register extension hooks.

        *extension* may be a mapping or any object (module, instance) with
        ``before``/``init``/``after`` attributes. Keyword arguments add
        hooks as well. Entries that are not callable are ignored.

        Raises:
            InitStateError: If init has already started.
        """
        self.check_idle("call extends()")
        source = caller_source_line()
        explicit = {"before": before, "init": init, "after": after}

        for phase in PHASES:
            candidates = [explicit[phase]]
            if extension is not None:
                candidates.insert(0, _phase_of(extension, phase))
            for fn in candidates:
                if callable(fn):
                    self._hooks[phase].append(
                        wrap_handler(fn, kind=f"extends.{phase}", source=source)
                    )
                    logger.debug("extends.%s: at %s", phase, source)

    def init(self, *params: Any, callback: Callback | None = None) -> asyncio.Task:
        """Start initialization and return its task.

        ``callback(error, None)``, when given, is invoked once the task
        settles.

        Raises:
            InitStateError: If init was already called.
        """
        self.check_idle("call init()")
        task = spawn(self._run_init(params))
        self.state = InitState.INITING
        logger.debug("initing")
        if callback is not None:
            attach_callback(task, callback, self._report)
        return task

    async def _run_init(self, params: tuple[Any, ...]) -> None:
        args = (self._context, *params)
        hooks = [handler for phase in PHASES for handler in self._hooks[phase]]
        try:
            await SequentialRunner(
                hooks, args, reporter=self._report, name="init.extends"
            ).run()
            await SequentialRunner(
                self.tasks, args, reporter=self._report, name="init.tasks"
            ).run()
        except Exception as exc:
            logger.debug("init failed: %s", exc)
            self._events.emit(ERROR_EVENT, exc)
            raise

        self.state = InitState.INITED
        logger.info(
            "Project inited: %d hook(s), %d task(s)", len(hooks), len(self.tasks)
        )
        self._events.emit(READY_EVENT)

    def ready(self, callback: Callable[[], Any]) -> None:
        """Call *callback* once init has completed.

        Before completion the callback waits for the ``ready`` event.
        Afterwards it is scheduled on the running loop, never called
        synchronously.

        Raises:
            TypeError: If *callback* is not callable.
            RuntimeError: If init has completed and no event loop is running.
        """
        if not callable(callback):
            raise TypeError(f"callback must be callable, got {type(callback).__name__}")
        if self.state is InitState.INITED:
            loop = running_loop()
            loop.call_soon(partial(self._events.invoke, callback, event=READY_EVENT))
        else:
            self._events.once(READY_EVENT, callback)

    async def wait_ready(self) -> None:
        """Return once init has completed."""
        if self.state is InitState.INITED:
            return
        future = asyncio.get_running_loop().create_future()

        def _resolve() -> None:
            if not future.done():
                future.set_result(None)

        self._events.once(READY_EVENT, _resolve)
        await future

    def run(
        self,
        tasks: Any,
        *params: Any,
        callback: Callback | None = None,
    ) -> asyncio.Task:
        """Run ad-hoc tasks against the context, in any state.

        *tasks* may be a callable, an iterable of callables, or a path for
        the bulk loader. Without *callback*, failures go to the ``error``
        event.
        """
        handlers: Iterable[Any]
        if isinstance(tasks, (str, os.PathLike)):
            handlers = load_handlers(tasks)
        elif callable(tasks):
            handlers = [tasks]
        else:
            handlers = list(tasks)

        runner = SequentialRunner(
            handlers, (self._context, *params), reporter=self._report, name="run"
        )
        task = runner.start()
        if callback is not None:
            attach_callback(task, callback, self._report)
        else:
            attach_callback(task, self._report_failure, self._report)
        return task

    def _report_failure(self, error: BaseException | None, _result: Any) -> None:
        if error is not None:
            self._report(error)
