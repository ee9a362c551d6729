"""projectcore - application bootstrap framework.

Extension modules contribute config, init tasks and hookable methods to
a central :class:`ProjectCore`, which runs their initialization once.
"""

from projectcore.core import (
    CallConvention,
    ConfigStore,
    EventChannel,
    Method,
    MethodManager,
    Namespace,
    ProjectCore,
    SequentialRunner,
)
from projectcore.errors import (
    AmbiguousCompletionError,
    ConfigFieldError,
    ConfigLoadError,
    DoubleCompletionError,
    InitStateError,
    InvalidParameterError,
    LoadError,
    MissingHandlerError,
    MissingParameterError,
    ProjectCoreError,
    WildcardRegisterError,
)

__version__ = "0.1.0"

__all__ = [
    "AmbiguousCompletionError",
    "CallConvention",
    "ConfigFieldError",
    "ConfigLoadError",
    "ConfigStore",
    "DoubleCompletionError",
    "EventChannel",
    "InitStateError",
    "InvalidParameterError",
    "LoadError",
    "Method",
    "MethodManager",
    "MissingHandlerError",
    "MissingParameterError",
    "Namespace",
    "ProjectCore",
    "ProjectCoreError",
    "SequentialRunner",
    "WildcardRegisterError",
]
