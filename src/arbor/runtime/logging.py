"""Build logger: stdlib logging with instance context."""

import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional

if TYPE_CHECKING:
    from arbor.core.instance import Instance

LOGGER_NAME = "arbor"


def on_log_message(vm: Optional["Instance"]) -> str:
    """Describe where in the instance tree a message comes from."""
    if vm is None:
        return ""

    path: List[str] = []
    current: Optional["Instance"] = vm
    while current is not None:
        state = current.state
        if state.is_component:
            path.append(current.options.name or "anonymous")
        elif state.not_public:
            path.append("for-item")
        elif state.is_repeat:
            path.append("repeat-item")
        else:
            path.append("root" if state.parent is None else "scope")
        current = state.parent

    return "(" + " > ".join(reversed(path)) + ")"


class BuildLogger:
    """Leveled logger used by the tree builder.

    Every call takes the instance that produced the message; its context
    is rendered by `context` (defaults to `on_log_message`).
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        context: Callable[[Optional["Instance"]], str] = on_log_message,
    ) -> None:
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.context = context

    def _log(self, level: int, message: Any, vm: Optional["Instance"], exc: Optional[BaseException]) -> None:
        if not self.logger.isEnabledFor(level):
            return
        where = self.context(vm) if vm is not None else ""
        text = f"{message} {where}".rstrip()
        self.logger.log(level, text, exc_info=exc)

    def debug(self, message: Any, vm: Optional["Instance"] = None, exc: Optional[BaseException] = None) -> None:
        self._log(logging.DEBUG, message, vm, exc)

    def info(self, message: Any, vm: Optional["Instance"] = None) -> None:
        self._log(logging.INFO, message, vm, None)

    def warn(self, message: Any, vm: Optional["Instance"] = None, exc: Optional[BaseException] = None) -> None:
        self._log(logging.WARNING, message, vm, exc)

    warning = warn

    def error(self, message: Any, vm: Optional["Instance"] = None, exc: Optional[BaseException] = None) -> None:
        self._log(logging.ERROR, message, vm, exc)


def configure_logging(level: int = logging.INFO, console: Any = None) -> None:
    """Send arbor logs through rich, like the CLI does."""
    from rich.logging import RichHandler

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
    )
    logging.getLogger(LOGGER_NAME).setLevel(level)
