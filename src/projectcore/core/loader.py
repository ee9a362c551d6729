"""Bulk task loading from files and directories.

A task module is a ``.py`` file defining a callable ``task``. Its
ordering weight comes from a module-level ``LEVEL`` or a ``level``
attribute on the function; higher levels run first.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType

from projectcore.core.handler import Handler, wrap_handler
from projectcore.errors import LoadError

logger = logging.getLogger(__name__)

TASK_ATTR = "task"
LEVEL_ATTR = "LEVEL"
_MODULE_PREFIX = "_projectcore_tasks"


def _module_name(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:10]
    return f"{_MODULE_PREFIX}.{path.stem}_{digest}"


def _import_file(path: Path) -> ModuleType:
    name = _module_name(path)
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise LoadError(path, f'cannot import module "{path}"')

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(name, None)
        raise LoadError(path, f'failed to import module "{path}": {exc}') from exc
    return module


def load_task_file(path: str | Path) -> Handler:
    """Import a single task module and wrap its ``task`` callable.

    Raises:
        LoadError: If the module cannot be imported or defines no callable
            ``task``.
    """
    path = Path(path).resolve()
    module = _import_file(path)

    fn = getattr(module, TASK_ATTR, None)
    if not callable(fn):
        raise LoadError(path, f'module "{path}" must define a callable "{TASK_ATTR}"')

    level = getattr(module, LEVEL_ATTR, None)
    if level is None:
        level = getattr(fn, "level", 0)

    logger.debug("load: %s (level=%s)", path, level)
    return wrap_handler(fn, kind="task", source=str(path), level=level)


def load_handlers(path: str | Path) -> list[Handler]:
    """Load one task file, or every ``*.py`` file below a directory.

    Directory results are sorted by descending level; ties keep
    discovery order (sorted path order).

    Raises:
        LoadError: If *path* is neither a file nor a directory, or a
            module fails to load.
    """
    path = Path(path)
    if path.is_file():
        return [load_task_file(path)]
    if path.is_dir():
        handlers = [load_task_file(f) for f in sorted(path.rglob("*.py"))]
        return sorted(handlers, key=lambda h: h.level, reverse=True)
    raise LoadError(path, f'"{path}" is not a file or directory')
