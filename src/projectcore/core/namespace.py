"""Dotted-path key/value stores for shared data and configuration."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from projectcore.core.config_loader import load_config_file
from projectcore.errors import ConfigFieldError

logger = logging.getLogger(__name__)

_MISSING = object()


def _split(name: str) -> list[str]:
    parts = [part for part in str(name).split(".") if part]
    if not parts:
        raise ValueError(f"invalid namespace key: {name!r}")
    return parts


def deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge *source* into *target* in place and return it."""
    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            deep_merge(current, value)
        elif isinstance(value, Mapping):
            target[key] = deep_merge({}, value)
        else:
            target[key] = value
    return target


class Namespace:
    """Nested key/value store addressed by dotted names.

    Example::

        ns = Namespace()
        ns.set("db.host", "localhost")
        ns.get("db")        # {"host": "localhost"}
        ns.has("db.port")   # False
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = {}
        if data:
            self.merge(data)

    def _lookup(self, name: str) -> Any:
        node: Any = self._data
        for part in _split(name):
            if not isinstance(node, dict) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def get(self, name: str, default: Any = None) -> Any:
        """Return the value at *name*, or *default* when absent."""
        value = self._lookup(name)
        return default if value is _MISSING else value

    def set(self, name: str, value: Any) -> None:
        """Set *name*, creating intermediate mappings as needed."""
        parts = _split(name)
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def has(self, name: str) -> bool:
        return self._lookup(name) is not _MISSING

    def delete(self, name: str) -> bool:
        """Remove *name*. Returns False if it was not set."""
        parts = _split(name)
        parent = self._lookup(".".join(parts[:-1])) if len(parts) > 1 else self._data
        if not isinstance(parent, dict) or parts[-1] not in parent:
            return False
        del parent[parts[-1]]
        return True

    def merge(self, data: Mapping[str, Any]) -> None:
        """Deep-merge a mapping into the store."""
        if not isinstance(data, Mapping):
            raise TypeError(f"merge() expects a mapping, got {type(data).__name__}")
        deep_merge(self._data, data)

    def all(self) -> dict[str, Any]:
        """Return a deep copy of the whole store."""
        return copy.deepcopy(self._data)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)


class ConfigStore(Namespace):
    """Configuration namespace. Reading an unset field is an error."""

    def get(self, name: str, default: Any = _MISSING) -> Any:
        """Return the value at *name*.

        Raises:
            ConfigFieldError: If *name* is unset and no default is given.
        """
        value = self._lookup(name)
        if value is _MISSING:
            if default is _MISSING:
                raise ConfigFieldError(name)
            return default
        return value

    def load(self, path: str | Path) -> None:
        """Load a YAML, JSON or Python config file into the store.

        Raises:
            ConfigLoadError: If the file cannot be read or applied.
        """
        logger.debug("config.load: %s", path)
        load_config_file(self, path)
