"""Core of the projectcore bootstrap framework."""

from __future__ import annotations

from .coordinator import InitCoordinator, InitState, TaskQueue
from .events import EventChannel
from .handler import CallConvention, Handler, wrap_handler
from .loader import load_handlers, load_task_file
from .method import Method, MethodPattern
from .method_manager import MethodManager, resolve_pattern
from .namespace import ConfigStore, Namespace
from .project import ProjectCore
from .runner import SequentialRunner

__all__ = [
    "CallConvention",
    "ConfigStore",
    "EventChannel",
    "Handler",
    "InitCoordinator",
    "InitState",
    "Method",
    "MethodManager",
    "MethodPattern",
    "Namespace",
    "ProjectCore",
    "SequentialRunner",
    "TaskQueue",
    "load_handlers",
    "load_task_file",
    "resolve_pattern",
    "wrap_handler",
]
