"""Error types raised or reported by projectcore.

Every error carries a stable, machine-readable ``code`` so callers can
branch on the kind of failure without matching message text.
"""

from __future__ import annotations

from typing import Any


class ProjectCoreError(Exception):
    """Base class for all projectcore errors."""

    code = "project_core_error"


class ParameterError(ProjectCoreError):
    """A method was called with parameters that failed its check schema."""

    code = "parameter_error"
    source = "ProjectCore.method"

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(message)


class MissingParameterError(ParameterError):
    """A parameter marked ``required`` was not supplied."""

    code = "missing_parameter"

    def __init__(self, name: str):
        super().__init__(name, f'missing parameter "{name}"')


class InvalidParameterError(ParameterError):
    """A parameter was supplied but its validator rejected the value."""

    code = "invalid_parameter"

    def __init__(self, name: str):
        super().__init__(name, f'invalid parameter "{name}"')


class MissingHandlerError(ProjectCoreError, TypeError):
    """A method was called before a main handler was registered."""

    code = "missing_handler"

    def __init__(self, method: str | None):
        self.method = method
        super().__init__(f"please register a handler for method {method}")


class AmbiguousCompletionError(ProjectCoreError):
    """A handler returned an awaitable and also invoked its continuation."""

    code = "ambiguous_completion"

    def __init__(self, handler: Any = None):
        self.handler = handler
        super().__init__(
            f"handler {handler!s} returned an awaitable and also called its "
            "continuation; use one completion style per handler"
        )


class DoubleCompletionError(ProjectCoreError):
    """A handler completed more than once."""

    code = "double_completion"

    def __init__(self, handler: Any = None):
        self.handler = handler
        super().__init__(f"handler {handler!s} has already completed")


class HandlerError(ProjectCoreError):
    """A continuation was invoked with an error value that is not an exception."""

    code = "handler_error"

    def __init__(self, reason: Any):
        self.reason = reason
        super().__init__(str(reason))


class InitStateError(ProjectCoreError):
    """A structural change or re-initialization was attempted outside IDLE."""

    code = "init_state"

    def __init__(self, state: Any, message: str):
        self.state = state
        super().__init__(message)


class WildcardRegisterError(ProjectCoreError, TypeError):
    """``register`` was called on a wildcard method pattern."""

    code = "wildcard_register"

    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(f'register method does not support wildcards: "{pattern}"')


class ConfigFieldError(ProjectCoreError, KeyError):
    """A config field was read but never set."""

    code = "config_field"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f'config field "{field}" is undefined')

    def __str__(self) -> str:
        return self.args[0]


class ConfigLoadError(ProjectCoreError):
    """A config file could not be read or applied."""

    code = "config_load"

    def __init__(self, path: Any, reason: Any):
        self.path = path
        super().__init__(f'failed to load config file "{path}": {reason}')


class LoadError(ProjectCoreError):
    """A task file or directory could not be loaded."""

    code = "load_error"

    def __init__(self, path: Any, message: str):
        self.path = path
        super().__init__(message)
