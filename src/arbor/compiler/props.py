"""Pulling props from a component's host element into its data."""

import functools
import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple, Type, Union

from arbor.compiler.assets import camel_to_dash, dash_to_camel

if TYPE_CHECKING:
    from arbor.core.instance import Instance
    from arbor.runtime.expressions import Evaluator
    from arbor.runtime.logging import BuildLogger

_MISSING = object()

TypeSpec = Union[Type[Any], Tuple[Type[Any], ...], None]


@dataclass
class PropDescriptor:
    type: TypeSpec = None
    default: Any = None
    required: bool = False
    validator: Optional[Callable[[Any], bool]] = None

    @classmethod
    def from_config(cls, config: Any) -> "PropDescriptor":
        """Accept a bare type (or tuple of types, or None) or a mapping."""
        if config is None or isinstance(config, (type, tuple)):
            return cls(type=config)
        if isinstance(config, PropDescriptor):
            return config
        return cls(
            type=config.get("type"),
            default=config.get("default"),
            required=bool(config.get("required", False)),
            validator=config.get("validator"),
        )

    def type_name(self) -> str:
        if isinstance(self.type, tuple):
            return " | ".join(t.__name__ for t in self.type)
        return getattr(self.type, "__name__", str(self.type))

    def check_type(self, value: Any) -> bool:
        # Exact type match, no coercion and no subclass leniency
        if value is None:
            return False
        if isinstance(self.type, tuple):
            return type(value) in self.type
        return type(value) is self.type


def _same(a: Any, b: Any) -> bool:
    if a is b:
        return True
    try:
        return bool(a == b)
    except Exception:
        return False


class PropsBinder:
    """Extracts attribute or bound values into an instance's data."""

    def __init__(self, evaluator: "Evaluator", logger: "BuildLogger") -> None:
        self.evaluator = evaluator
        self.logger = logger

    def pull_props(self, vm: "Instance") -> None:
        props = vm.options.props
        if not props:
            return

        vm.state.has_props = True
        if isinstance(props, (list, tuple)):
            for name in props:
                self.pull_prop(vm, name, None, described=False)
            return

        for name, config in props.items():
            self.pull_prop(vm, name, config)

    def pull_prop(self, vm: "Instance", name: str, config: Any, described: bool = True) -> None:
        attr_name = camel_to_dash(name)
        prop_name = dash_to_camel(name)
        el = vm.el
        parent = vm.state.parent

        # Consumed attributes move to `el.props` so a re-pull still finds them
        if el.attribs.get(attr_name) is not None:
            el.props[attr_name] = el.attribs[attr_name]
            el.attribs[attr_name] = None

        descriptor = PropDescriptor.from_config(config) if described else None

        raw_present = False
        value: Any = None

        literal = el.props.get(attr_name)
        if literal:
            raw_present = True
            value = literal

        bound = el.bound(attr_name)
        if bound is not None:
            bound.is_compiled = True
            raw_present = True
            value = self.evaluator.execute(
                parent or vm,
                bound.value.get,
                bound.value.filters,
                is_escape=False,
                is_clean=False,
            )

        mirror = vm.state.initial_data_mirror
        mirrored = mirror.get(prop_name, _MISSING)
        if mirrored is not _MISSING and mirrored is not None and _same(mirrored, value):
            return
        mirror[prop_name] = value

        if descriptor is not None:
            if not raw_present:
                default = descriptor.default
                value = default() if callable(default) else default

                if descriptor.required:
                    self.logger.warn(f"Missing required prop: {prop_name}", vm)
                    return
            else:
                if descriptor.type is not None and not descriptor.check_type(value):
                    got = "None" if value is None else type(value).__name__
                    self.logger.warn(
                        f'Invalid prop: type check failed for "{prop_name}". '
                        f"Expected {descriptor.type_name()}, got {got}",
                        vm,
                    )
                    return

                if descriptor.validator is not None:
                    try:
                        valid = descriptor.validator(value)
                        error = None
                    except Exception as e:
                        valid, error = False, e
                    if not valid:
                        self.logger.warn(
                            f'Invalid prop: custom validator check failed for "{prop_name}"',
                            vm,
                            exc=error,
                        )
                        return

        # Plain functions passed down run against the parent that passed them
        if parent is not None and inspect.isfunction(value):
            value = functools.partial(value, parent)

        vm.data[prop_name] = value
