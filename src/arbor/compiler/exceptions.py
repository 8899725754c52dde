from typing import Any, Optional


class ArborError(Exception):
    """Base class for arbor errors."""

    pass


class ComponentResolveError(ArborError):
    """An async component factory rejected or produced nothing usable."""

    def __init__(self, name: Optional[str], reason: Any = None):
        self.name = name
        self.reason = reason
        message = f'Failed to resolve component: "{name}"'
        if reason:
            message += f". Reason: {reason}"
        super().__init__(message)


class TreeLoadError(ArborError):
    """Malformed element tree input."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        if path:
            message = f"{message} (at {path})"
        super().__init__(message)


class BuildTimeoutError(ArborError):
    """The tree did not become ready within the configured timeout."""

    pass


class FilterError(ArborError):
    """A filter in a pipeline failed; `partial` holds the value reached so far."""

    def __init__(self, name: str, partial: Any, cause: Optional[BaseException] = None):
        self.name = name
        self.partial = partial
        self.cause = cause
        super().__init__(f'Filter "{name}" failed: {cause}')
