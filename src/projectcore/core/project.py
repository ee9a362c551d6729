"""ProjectCore: the application object extensions plug into.

Owns one of each collaborator: configuration, shared data, events, the
method registry and the init coordinator. Nothing here is a process-wide
singleton; build one ProjectCore per application.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from projectcore.config import Config
from projectcore.core.coordinator import InitCoordinator, InitState, TaskQueue
from projectcore.core.events import ERROR_EVENT, EventChannel
from projectcore.core.method import Method, MethodPattern
from projectcore.core.method_manager import MethodManager
from projectcore.core.namespace import ConfigStore, Namespace
from projectcore.core.runner import Callback
from projectcore.logging_config import setup_logging

logger = logging.getLogger(__name__)


class ProjectCore:
    """Central registry for configuration, init tasks and methods.

    Example::

        core = ProjectCore()
        core.config.set("greeting", "hello")

        def init(core):
            core.data.set("ready_at", time.time())

        core.extends(init=init)
        core.method("greet").register(lambda p: f"{core.config.get('greeting')} {p['name']}")

        await core.init()
        await core.method("greet").call({"name": "core"})
    """

    def __init__(self) -> None:
        self.config = ConfigStore()
        self.data = Namespace()
        self.event = EventChannel()
        self.methods = MethodManager(reporter=self._report)
        self._coordinator = InitCoordinator(self, self.event)

    @classmethod
    def from_env(cls, *, configure_logging: bool = False) -> ProjectCore:
        """Build a core from environment settings.

        Loads every file in ``Config.CONFIG_FILES`` and queues the tasks
        found at ``Config.TASKS_PATH`` when set. With *configure_logging*,
        :func:`setup_logging` runs first so loading is logged to the
        application log file.
        """
        if configure_logging:
            setup_logging()
        core = cls()
        for path in Config.CONFIG_FILES:
            core.config.load(path)
        if Config.TASKS_PATH:
            core.tasks.load(Config.TASKS_PATH)
        logger.info(
            "ProjectCore built from env: %d config file(s), tasks=%s",
            len(Config.CONFIG_FILES),
            Config.TASKS_PATH or "-",
        )
        return core

    def _report(self, error: BaseException) -> None:
        self.event.emit(ERROR_EVENT, error)

    # Init coordination ---------------------------------------------------
    @property
    def state(self) -> InitState:
        return self._coordinator.state

    @property
    def inited(self) -> bool:
        return self._coordinator.inited

    @property
    def initing(self) -> bool:
        return self._coordinator.initing

    @property
    def tasks(self) -> TaskQueue:
        """Init task queue (``add`` / ``load``)."""
        return self._coordinator.tasks

    def extends(
        self,
        extension: Any = None,
        *,
        before: Callable[..., Any] | None = None,
        init: Callable[..., Any] | None = None,
        after: Callable[..., Any] | None = None,
    ) -> None:
        """Register ``before``/``init``/``after`` hooks. See InitCoordinator.extends."""
        self._coordinator.extends(extension, before=before, init=init, after=after)

    def init(self, *params: Any, callback: Callback | None = None) -> asyncio.Task:
        """Run every hook, then every init task. See InitCoordinator.init."""
        return self._coordinator.init(*params, callback=callback)

    def ready(self, callback: Callable[[], Any]) -> None:
        self._coordinator.ready(callback)

    async def wait_ready(self) -> None:
        await self._coordinator.wait_ready()

    def run(self, tasks: Any, *params: Any, callback: Callback | None = None) -> asyncio.Task:
        """Run ad-hoc tasks against this core. See InitCoordinator.run."""
        return self._coordinator.run(tasks, *params, callback=callback)

    # Methods ---------------------------------------------------------------
    def method(self, name: str) -> Method | MethodPattern:
        """Return the method (or wildcard view) called *name*."""
        return self.methods.method(name)
