"""Method registry.

Owns the name -> :class:`Method` mapping. Exact names create methods
lazily; names containing ``*`` yield a :class:`MethodPattern` that is
never stored.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Iterable, Iterator

from projectcore.core.method import Method, MethodPattern
from projectcore.core.runner import Reporter

logger = logging.getLogger(__name__)

WILDCARD = "*"


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a wildcard pattern. ``*`` matches any substring, non-greedy.

    The result must be applied with ``fullmatch`` so both ends are anchored.
    """
    escaped = re.escape(pattern).replace(re.escape(WILDCARD), "(.*?)")
    return re.compile(escaped)


def resolve_pattern(pattern: str, names: Iterable[str]) -> list[str]:
    """Return the names matching *pattern*, preserving their order."""
    regex = compile_pattern(pattern)
    return [name for name in names if regex.fullmatch(name)]


class MethodManager:
    """Registry of named methods.

    Lookups are guarded by a lock so the registry can be shared by
    threads running their own event loops.
    """

    def __init__(self, reporter: Reporter | None = None) -> None:
        self._methods: dict[str, Method] = {}
        self._lock = threading.Lock()
        self._reporter = reporter

    def method(self, name: str) -> Method | MethodPattern:
        """Return the method called *name*, creating it on first access.

        A name containing ``*`` returns a wildcard view that forwards
        ``before``/``after``/``catch`` to every matching method.
        """
        if WILDCARD in name:
            return MethodPattern(name, self._match)

        with self._lock:
            method = self._methods.get(name)
            if method is None:
                method = Method(name, reporter=self._reporter)
                self._methods[name] = method
                logger.debug("method created: %s", name)
            return method

    def _match(self, pattern: str) -> list[Method]:
        with self._lock:
            snapshot = dict(self._methods)
        return [snapshot[name] for name in resolve_pattern(pattern, snapshot)]

    def names(self) -> list[str]:
        """Return registered method names in creation order."""
        with self._lock:
            return list(self._methods)

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def __iter__(self) -> Iterator[Method]:
        return iter(list(self._methods.values()))

    def __len__(self) -> int:
        return len(self._methods)
