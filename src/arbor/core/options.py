"""Component descriptors and composed constructors."""

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Union

if TYPE_CHECKING:
    from arbor.runtime.logging import BuildLogger

# Lifecycle hooks, in the order they fire
INIT_HOOKS = ["on_created"]
BUILD_HOOKS = ["on_compiled", "on_activate"]
RENDER_HOOKS = ["on_ready"]
LIFECYCLE_HOOKS = INIT_HOOKS + BUILD_HOOKS + RENDER_HOOKS


@dataclass
class ComponentOptions:
    """Declarative description of a component.

    Hooks, `data`, computed getters and methods all receive the instance
    as their first argument.
    """

    name: Optional[str] = None
    template: Optional[Callable[[], List[Any]]] = None
    data: Any = None
    props: Optional[Dict[str, Any]] = None
    computed: Dict[str, Any] = field(default_factory=dict)
    methods: Dict[str, Callable[..., Any]] = field(default_factory=dict)
    mixins: List["ComponentOptions"] = field(default_factory=list)
    events: Dict[str, Callable[..., Any]] = field(default_factory=dict)
    replace: Optional[bool] = None
    inherit: bool = False

    components: Dict[str, Any] = field(default_factory=dict)
    partials: Dict[str, Any] = field(default_factory=dict)
    filters: Dict[str, Any] = field(default_factory=dict)

    on_created: Optional[Callable[..., Any]] = None
    on_compiled: Optional[Callable[..., Any]] = None
    on_activate: Optional[Callable[..., Any]] = None
    on_ready: Optional[Callable[..., Any]] = None

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Any], logger: Optional["BuildLogger"] = None
    ) -> "ComponentOptions":
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in mapping.items():
            if key not in known:
                if logger:
                    logger.warn(f'Unknown component option "{key}"')
                continue
            kwargs[key] = value

        mixins = kwargs.get("mixins")
        if mixins:
            kwargs["mixins"] = [as_options(m, logger) for m in mixins]

        return cls(**kwargs)

    def copy(self) -> "ComponentOptions":
        """Shallow copy with private registry/option dicts."""
        return dataclasses.replace(
            self,
            computed=dict(self.computed),
            methods=dict(self.methods),
            mixins=list(self.mixins),
            events=dict(self.events),
            components=dict(self.components),
            partials=dict(self.partials),
            filters=dict(self.filters),
        )


def as_options(
    value: Union[ComponentOptions, Mapping[str, Any]],
    logger: Optional["BuildLogger"] = None,
) -> ComponentOptions:
    if isinstance(value, ComponentOptions):
        return value
    return ComponentOptions.from_mapping(value, logger)


class ComponentConstructor:
    """A composed component, ready to be instantiated.

    Calling it returns a fresh `ComponentOptions` for one instance.
    """

    __is_ctor__ = True

    def __init__(self, options: ComponentOptions) -> None:
        self.options = options

    @property
    def name(self) -> Optional[str]:
        return self.options.name

    def __call__(self) -> ComponentOptions:
        return self.options.copy()

    def __repr__(self) -> str:
        return f"ComponentConstructor({self.options.name!r})"


def is_constructor(value: Any) -> bool:
    return getattr(value, "__is_ctor__", False) is True


def compose_component(
    logger: Optional["BuildLogger"],
    descriptor: Union[ComponentOptions, Mapping[str, Any]],
    mixin: Optional[Union[ComponentOptions, Mapping[str, Any]]] = None,
) -> ComponentConstructor:
    """Compose a descriptor into a constructor, applying the global mixin first."""
    options = as_options(descriptor, logger).copy()
    if mixin:
        options.mixins = [as_options(mixin, logger)] + options.mixins
    return ComponentConstructor(options)


def component(**options: Any) -> ComponentConstructor:
    """Declare a component inline.

    Usage:
        Counter = component(
            name="counter",
            template=lambda: [element("span")],
            data=lambda vm: {"count": 0},
        )
    """
    return compose_component(None, options)
