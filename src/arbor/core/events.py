"""Per-instance event bus."""

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

Handler = Callable[..., Any]


class EventBus:
    """Per-instance publish/subscribe used for lifecycle signaling."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self.cancelled = False

    def on(self, name: str, handler: Handler) -> Handler:
        self._handlers[name].append(handler)
        return handler

    def once(self, name: str, handler: Handler) -> Handler:
        def wrapper(*args: Any) -> Any:
            self.off(name, wrapper)
            return handler(*args)

        self._handlers[name].append(wrapper)
        return wrapper

    def off(self, name: Optional[str] = None, handler: Optional[Handler] = None) -> None:
        """Remove one handler, every handler of an event, or everything."""
        if name is None:
            self._handlers.clear()
            return
        if handler is None:
            self._handlers.pop(name, None)
            return
        handlers = self._handlers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, name: str, *args: Any) -> bool:
        """Call every handler of `name` in subscription order.

        Returns True if some handler asked for further propagation
        (by returning True), which `dispatch`/`broadcast` use.
        """
        handlers = self._handlers.get(name)
        if not handlers:
            return False

        propagate = False
        # Handlers may unsubscribe themselves while we iterate
        for handler in list(handlers):
            if handler(*args) is True:
                propagate = True
        return propagate

    def has(self, name: str) -> bool:
        return bool(self._handlers.get(name))

    def count(self, name: str) -> int:
        return len(self._handlers.get(name, ()))

    def reset(self) -> None:
        self._handlers.clear()
        self.cancelled = False
