"""Built component / loop-item instances."""

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from arbor.core.events import EventBus, Handler
from arbor.core.options import ComponentOptions

if TYPE_CHECKING:
    from arbor.core.element import ElementNode
    from arbor.runtime.logging import BuildLogger


SYSTEM_PREFIXES = ("$", "_")

# Attributes of the instance object; same-named data stays reachable from templates
HANDLES = frozenset(
    {
        "el",
        "parent",
        "root",
        "children",
        "refs",
        "els",
        "options",
        "events",
        "state",
        "data",
        "methods",
        "is_compiled",
        "is_ready",
        "is_server",
    }
)


@dataclass
class InstanceState:
    """Runtime bookkeeping that templates never see."""

    parent: Optional["Instance"] = None
    logger: Optional["BuildLogger"] = None
    loop: Optional[asyncio.AbstractEventLoop] = None

    # Declared children, one slot each, fixed once expansion reserves them
    children: List[Optional["Instance"]] = field(default_factory=list)
    child_slots: List["asyncio.Future[Any]"] = field(default_factory=list)
    ready_slot: Optional["asyncio.Future[Any]"] = None
    build_generation: int = 0

    # Root only
    not_ready_count: int = 0
    to_rebuild: bool = False
    mixin: Any = None

    # Persisted component instances keyed by element id + component name
    vms: Dict[str, "Instance"] = field(default_factory=dict)
    vms_detached: Dict[str, Optional["Instance"]] = field(default_factory=dict)

    initial_data_mirror: Dict[str, Any] = field(default_factory=dict)

    is_component: bool = False
    is_repeat: bool = False
    not_public: bool = False
    has_props: bool = False
    has_with_data: bool = False


def is_system_prop(name: str, parent: Optional["Instance"] = None) -> bool:
    """True for names that are never copied as template data.

    A parent's method names are always inheritable.
    """
    if parent is not None and name in parent.methods:
        return False
    return name.startswith(SYSTEM_PREFIXES)


class Instance:
    """Template-visible data plus lifecycle state for one scope.

    Attribute access falls through to `data` (then `methods`) for every
    name that is not a reserved handle, so hooks can write `vm.count += 1`.
    """

    def __init__(self, el: Optional["ElementNode"] = None) -> None:
        object.__setattr__(self, "data", {})
        object.__setattr__(self, "methods", {})
        object.__setattr__(self, "state", InstanceState())
        object.__setattr__(self, "events", EventBus())
        object.__setattr__(self, "options", ComponentOptions())
        object.__setattr__(self, "el", el)
        object.__setattr__(self, "parent", None)
        object.__setattr__(self, "root", self)
        object.__setattr__(self, "children", [])
        object.__setattr__(self, "refs", {})
        object.__setattr__(self, "els", {})
        object.__setattr__(self, "is_compiled", False)
        object.__setattr__(self, "is_ready", False)
        object.__setattr__(self, "is_server", True)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        data = self.__dict__.get("data", {})
        if name in data:
            return data[name]
        methods = self.__dict__.get("methods", {})
        if name in methods:
            return methods[name]
        raise AttributeError(f"{type(self).__name__} has no attribute or data '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in HANDLES or name.startswith("__"):
            object.__setattr__(self, name, value)
        else:
            self.data[name] = value

    def __delattr__(self, name: str) -> None:
        if name in HANDLES:
            raise AttributeError(f"Cannot delete instance handle '{name}'")
        try:
            del self.data[name]
        except KeyError:
            raise AttributeError(name)

    def __contains__(self, name: str) -> bool:
        return name in self.data or name in self.methods

    def __repr__(self) -> str:
        kind = "component" if self.state.is_component else "scope"
        if self.state.not_public:
            kind = "light"
        name = self.options.name or ""
        return f"<Instance {kind} {name} keys={sorted(self.data)}>"

    # -- data -------------------------------------------------------------

    def set(self, keypath: str, value: Any) -> "Instance":
        """Assign through a dotted keypath, creating dicts along the way."""
        parts = keypath.split(".")
        target: Any = self.data
        for part in parts[:-1]:
            if isinstance(target, dict):
                target = target.setdefault(part, {})
            else:
                target = getattr(target, part)
        if isinstance(target, dict):
            target[parts[-1]] = value
        else:
            setattr(target, parts[-1], value)
        return self

    def get(self, keypath: str, default: Any = None) -> Any:
        target: Any = self
        for part in keypath.split("."):
            if isinstance(target, Instance):
                if part in target.data:
                    target = target.data[part]
                elif part in target.methods:
                    target = target.methods[part]
                else:
                    return default
            elif isinstance(target, dict):
                if part not in target:
                    return default
                target = target[part]
            else:
                try:
                    target = getattr(target, part)
                except AttributeError:
                    return default
        return target

    def context(self) -> Dict[str, Any]:
        """Names visible to template expressions."""
        ctx: Dict[str, Any] = {
            "_parent": self.parent,
            "_root": self.root,
            "_refs": self.refs,
            "_els": self.els,
        }
        ctx.update(self.methods)
        ctx.update(self.data)
        return ctx

    # -- events -----------------------------------------------------------

    def on(self, name: str, handler: Handler) -> Handler:
        return self.events.on(name, handler)

    def once(self, name: str, handler: Handler) -> Handler:
        return self.events.once(name, handler)

    def off(self, name: Optional[str] = None, handler: Optional[Handler] = None) -> None:
        self.events.off(name, handler)

    def emit(self, name: str, *args: Any) -> bool:
        return self.events.emit(name, *args)

    def dispatch(self, name: str, *args: Any) -> None:
        """Emit on self, then on each ancestor while handlers ask to propagate."""
        target: Optional[Instance] = self
        propagate = True
        while target is not None and propagate:
            has_handlers = target.events.has(name)
            propagate = target.emit(name, *args) or not has_handlers
            target = target.parent if target.parent is not target else None

    def broadcast(self, name: str, *args: Any) -> None:
        """Emit on every descendant, stopping below instances that handled it."""
        for child in list(self.children):
            if child is None:
                continue
            has_handlers = child.events.has(name)
            if child.emit(name, *args) or not has_handlers:
                child.broadcast(name, *args)

    # -- misc -------------------------------------------------------------

    def next_tick(self, fn: Callable[["Instance"], Any]) -> None:
        loop = self.state.loop or asyncio.get_event_loop()
        loop.call_soon(fn, self)

    def log(self, name: str) -> None:
        if self.state.logger:
            self.state.logger.info(repr(self.get(name)), self)
