"""Named methods: a main handler wrapped in before/after hooks.

A :class:`Method` validates its parameters, runs
``before + [main] + after`` through a :class:`SequentialRunner` and
dispatches failures to its catch observers.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterable

from projectcore.core.handler import Handler, wrap_handler
from projectcore.core.runner import (
    Callback,
    Reporter,
    SequentialRunner,
    attach_callback,
    log_report,
)
from projectcore.errors import (
    InvalidParameterError,
    MissingHandlerError,
    MissingParameterError,
    WildcardRegisterError,
)
from projectcore.utils import caller_source_line, clone_params, run_in_new_loop, spawn

logger = logging.getLogger(__name__)

CheckSchema = Mapping[str, Mapping[str, Any]]


def check_params(schema: CheckSchema, params: Any) -> None:
    """Validate *params* against *schema*.

    Every required entry is checked before any validator runs.

    Raises:
        MissingParameterError: For the first required name (in schema order)
            absent from *params*.
        InvalidParameterError: For the first present name (in params order)
            whose validator returns a falsy value.
    """
    for name, rule in schema.items():
        if rule and rule.get("required") and name not in params:
            raise MissingParameterError(name)

    for name in params:
        rule = schema.get(name)
        if not rule:
            continue
        validate = rule.get("validate")
        if validate is not None and not validate(params[name]):
            raise InvalidParameterError(name)


class Method:
    """A named, hookable call pipeline.

    Example::

        method = Method("math.add")
        method.check({"a": {"required": True, "validate": lambda v: v is not None}})
        method.before(lambda params: {**params, "a": int(params["a"])})
        method.register(lambda params: params["a"] + params["b"])
        result = await method.call({"a": "1", "b": 2})
    """

    def __init__(self, name: str | None = None, reporter: Reporter | None = None) -> None:
        self.name = name
        self._handler: Handler | None = None
        self._before: list[Handler] = []
        self._after: list[Handler] = []
        self._catch: list[Handler] = []
        self._check: CheckSchema | None = None
        self._report = reporter or log_report

    def __repr__(self) -> str:
        return f"<Method {self.name!r}>"

    @property
    def handler(self) -> Handler | None:
        """The registered main handler, if any."""
        return self._handler

    @property
    def hooks(self) -> dict[str, list[Handler]]:
        """Snapshot of the registered before/after/catch handlers."""
        return {
            "before": list(self._before),
            "after": list(self._after),
            "catch": list(self._catch),
        }

    def _wrap(self, fn: Any, kind: str) -> Handler:
        handler = wrap_handler(fn, kind=kind, name=self.name, source=caller_source_line())
        logger.debug("method.%s: %s at %s", kind, self.name, handler.source)
        return handler

    def check(self, schema: CheckSchema | None = None) -> Method:
        """Install the parameter check schema, or remove it with ``None``.

        Schema format::

            {
                "a": {                          # parameter name
                    "required": True,           # must be present
                    "validate": lambda v: ...,  # must return truthy
                },
            }
        """
        logger.debug("method.check: %s at %s", self.name, caller_source_line())
        self._check = schema
        return self

    def register(self, fn: Callable[..., Any]) -> Method:
        """Set the main handler, replacing any previous one.

        Handlers take ``(params)`` and return the result, return an
        awaitable, or take ``(params, done)`` and call ``done(error, result)``.

        Raises:
            TypeError: If *fn* is not callable.
        """
        self._handler = self._wrap(fn, "main")
        return self

    def before(self, fn: Callable[..., Any]) -> Method:
        """Append a hook that runs before the main handler."""
        self._before.append(self._wrap(fn, "before"))
        return self

    def after(self, fn: Callable[..., Any]) -> Method:
        """Append a hook that runs after the main handler."""
        self._after.append(self._wrap(fn, "after"))
        return self

    def catch(self, fn: Callable[..., Any]) -> Method:
        """Append an observer called as ``fn(error, params, result)`` on failure."""
        self._catch.append(self._wrap(fn, "catch"))
        return self

    def call(self, params: Any = None, callback: Callback | None = None) -> asyncio.Task:
        """Call the method and return a task settling with its outcome.

        ``callback(error, result)``, when given, is invoked after the task
        settles with the same outcome. Must be called with a running loop.
        """
        task = spawn(self._execute(params))
        if callback is not None:
            attach_callback(task, callback, self._report)
        return task

    def call_sync(self, params: Any = None) -> Any:
        """Call the method from synchronous code and return its result."""
        return run_in_new_loop(self._execute(params))

    async def _execute(self, params: Any) -> Any:
        params = clone_params(params)
        runner: SequentialRunner | None = None
        try:
            if self._check:
                check_params(self._check, params)
            if self._handler is None:
                raise MissingHandlerError(self.name)

            runner = SequentialRunner(
                self._iter_handlers(),
                pipe=True,
                reporter=self._report,
                name=f"method {self.name}",
            )
            return await runner.run(params)
        except Exception as exc:
            last_result = runner.last_result if runner is not None else None
            logger.debug("method.call: %s failed: %s", self.name, exc)
            await self._process_catch(exc, params, last_result)
            raise

    def _iter_handlers(self) -> Iterable[Handler]:
        yield from self._before
        yield self._handler
        yield from self._after

    async def _process_catch(self, error: Exception, params: Any, result: Any) -> None:
        for handler in list(self._catch):
            try:
                ret = handler(error, params, result)
                if inspect.isawaitable(ret):
                    await ret
            except Exception as exc:
                logger.warning(
                    "call catch function failed at %s", handler.source, exc_info=True
                )
                self._report(exc)


class MethodPattern:
    """Wildcard view over every method whose name matches *pattern*.

    Holds no handlers of its own: each hook registration resolves the
    currently registered methods and forwards to them.
    """

    def __init__(self, pattern: str, resolve: Callable[[str], list[Method]]) -> None:
        self.name = pattern
        self._resolve = resolve

    def __repr__(self) -> str:
        return f"<MethodPattern {self.name!r}>"

    def _forward(self, action: str, fn: Callable[..., Any]) -> MethodPattern:
        if not callable(fn):
            raise TypeError(f"argument must be a function, got {type(fn).__name__}")
        methods = self._resolve(self.name)
        logger.debug("method.%s: %s matched %d method(s)", action, self.name, len(methods))
        for method in methods:
            getattr(method, action)(fn)
        return self

    def before(self, fn: Callable[..., Any]) -> MethodPattern:
        return self._forward("before", fn)

    def after(self, fn: Callable[..., Any]) -> MethodPattern:
        return self._forward("after", fn)

    def catch(self, fn: Callable[..., Any]) -> MethodPattern:
        return self._forward("catch", fn)

    def register(self, fn: Callable[..., Any]) -> MethodPattern:
        raise WildcardRegisterError(self.name)
