"""Handler primitives for the task-pipeline engine.

Defines the calling conventions a handler may use and the immutable
wrapper the runner executes.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from projectcore.utils import caller_source_line

_COUNTED_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


class CallConvention(Enum):
    """How a handler reports completion.

    SYNC:         the return value is the result.
    CONTINUATION: the handler calls ``done(error, result)`` when finished.
    DEFERRED:     the handler returns an awaitable that settles with the result.
    """

    SYNC = "sync"
    CONTINUATION = "continuation"
    DEFERRED = "deferred"


def declared_arity(func: Callable[..., Any]) -> int:
    """Count required positional parameters of *func*.

    Parameters with defaults, ``*args`` and keyword-only parameters are not
    counted. Callables without an introspectable signature count as zero.
    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return 0
    return sum(
        1
        for param in signature.parameters.values()
        if param.kind in _COUNTED_KINDS and param.default is inspect.Parameter.empty
    )


@dataclass(frozen=True)
class Handler:
    """Immutable unit of work executed by :class:`SequentialRunner`.

    Attributes:
        func: The wrapped callable.
        arity: Required positional parameter count, fixed at wrap time.
        kind: Role of the handler (``before``, ``main``, ``after``, ``hook``...).
        name: Owning method name, or the function's own name.
        source: ``path:line`` where the handler was registered.
        level: Ordering weight used by bulk loading. Higher runs first.
    """

    func: Callable[..., Any]
    arity: int
    kind: str = "task"
    name: str | None = None
    source: str | None = field(default=None, compare=False)
    level: int = 0

    def convention(self, argc: int) -> CallConvention:
        """Classify by arity against the *argc* arguments the runner supplies."""
        if self.arity <= argc:
            return CallConvention.SYNC
        return CallConvention.CONTINUATION

    def __call__(self, *args: Any) -> Any:
        return self.func(*args)

    def __str__(self) -> str:
        label = self.name or getattr(self.func, "__qualname__", repr(self.func))
        if self.source:
            return f"{self.kind}:{label} at {self.source}"
        return f"{self.kind}:{label}"


def wrap_handler(
    func: Any,
    kind: str = "task",
    name: str | None = None,
    source: str | None = None,
    level: int | None = None,
) -> Handler:
    """Wrap *func* as a :class:`Handler`.

    An existing Handler is returned unchanged.

    Raises:
        TypeError: If *func* is not callable.
    """
    if isinstance(func, Handler):
        return func
    if not callable(func):
        raise TypeError(f"argument must be a function, got {type(func).__name__}")
    if level is None:
        level = getattr(func, "level", 0) or 0
    return Handler(
        func=func,
        arity=declared_arity(func),
        kind=kind,
        name=name or getattr(func, "__name__", None),
        source=source or caller_source_line(),
        level=int(level),
    )
