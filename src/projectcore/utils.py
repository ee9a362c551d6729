"""Small helpers shared by the core modules."""

from __future__ import annotations

import asyncio
import copy
import inspect
import threading
from pathlib import Path
from typing import Any, Coroutine

_PACKAGE_DIR = str(Path(__file__).resolve().parent)


def clone_params(params: Any) -> Any:
    """Return a shallow copy of list, dict and set params; anything else as-is."""
    if isinstance(params, (list, dict, set)):
        return copy.copy(params)
    return params


def caller_source_line() -> str | None:
    """Return ``path:line`` of the first stack frame outside this package."""
    frame = inspect.currentframe()
    try:
        while frame is not None:
            filename = frame.f_code.co_filename
            if not str(Path(filename).resolve()).startswith(_PACKAGE_DIR):
                return f"{filename}:{frame.f_lineno}"
            frame = frame.f_back
        return None
    finally:
        del frame


def running_loop() -> asyncio.AbstractEventLoop:
    """Return the running loop.

    Raises:
        RuntimeError: If no event loop is running in this thread.
    """
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        raise RuntimeError("an asyncio event loop must be running in this thread") from None


def spawn(coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
    """Schedule *coro* on the running loop.

    Raises:
        RuntimeError: If no event loop is running in this thread.
    """
    try:
        loop = running_loop()
    except RuntimeError:
        coro.close()
        raise
    return loop.create_task(coro)


def run_in_new_loop(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run *coro* to completion on a fresh event loop in a helper thread.

    Safe to call from synchronous code whether or not the calling thread
    already has a running loop.
    """
    result: dict[str, Any] = {}

    def _target() -> None:
        try:
            result["value"] = asyncio.run(coro)
        except BaseException as exc:
            result["error"] = exc

    thread = threading.Thread(target=_target, name="projectcore-sync", daemon=True)
    thread.start()
    thread.join()

    if "error" in result:
        raise result["error"]
    return result.get("value")
