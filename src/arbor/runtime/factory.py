"""Creating and registering instances."""

import asyncio
import types
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from arbor.compiler.assets import ASSET_KINDS, dash_to_camel, merge_registries
from arbor.core.context import ChildContext
from arbor.core.element import Directive, ElementNode, document_node
from arbor.core.instance import Instance, is_system_prop
from arbor.core.options import ComponentOptions
from arbor.runtime.lifecycle import READY_TO_COMPILE, REBUILD_COMPUTED, STOP_BUILDING

if TYPE_CHECKING:
    from arbor.compiler.props import PropsBinder
    from arbor.runtime.config import RendererConfig
    from arbor.runtime.expressions import Evaluator
    from arbor.runtime.lifecycle import LifecycleCoordinator
    from arbor.runtime.logging import BuildLogger


class InstanceFactory:
    """Builds instances and wires them into the tree.

    Every child occupies one slot in its builder's `state.children` /
    `state.child_slots`; the builder's build completes once all of its slot
    futures are done.
    """

    def __init__(
        self,
        config: "RendererConfig",
        registries: Dict[str, Dict[str, Any]],
        logger: "BuildLogger",
        evaluator: "Evaluator",
        binder: "PropsBinder",
        lifecycle: "LifecycleCoordinator",
        loop: asyncio.AbstractEventLoop,
        mixin: Any = None,
        global_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.config = config
        self.registries = registries
        self.logger = logger
        self.evaluator = evaluator
        self.binder = binder
        self.lifecycle = lifecycle
        self.loop = loop
        self.mixin = mixin
        self.global_data = global_data or {}

    # -- slots ------------------------------------------------------------

    def reserve_slot(self, vm: Instance) -> int:
        vm.state.children.append(None)
        vm.state.child_slots.append(self.loop.create_future())
        return len(vm.state.child_slots) - 1

    def release_slot(self, vm: Instance, index: Optional[int], generation: int) -> None:
        """Mark a slot done without a child (failed or dropped component)."""
        if index is None or vm.state.build_generation != generation:
            return
        slot = vm.state.child_slots[index]
        if not slot.done():
            slot.set_result(None)

    def real_parent(self, vm: Instance) -> Instance:
        while vm.state.not_public and vm.state.parent is not None:
            vm = vm.state.parent
        return vm

    # -- registration -----------------------------------------------------

    def add_child(self, vm: Instance, ctx: ChildContext) -> Instance:
        target = self.real_parent(vm)
        key = f"{ctx.element.id}{ctx.component_name or ''}"
        persistable = ctx.component is not None and not ctx.repeat_data

        present = None
        if persistable and vm.state.vms_detached:
            present = vm.state.vms_detached.pop(key, None)

        index = ctx.child_index if ctx.child_index is not None else self.reserve_slot(vm)
        slot = vm.state.child_slots[index]

        if present is None:
            ctx.parent = vm
            ctx.parent_link = target
            ctx.components = target.options.components
            ctx.partials = target.options.partials
            ctx.filters = target.options.filters
            new_vm = self.init_view_model(ctx)
        else:
            new_vm = present
            self.lifecycle.reset_vm_instance(new_vm, ctx.element)
            self.build_with_data(new_vm, ctx)
            self.binder.pull_props(new_vm)
        new_vm.state.ready_slot = slot

        vm.state.children[index] = new_vm
        target.children.append(new_vm)
        self._register_ref(target, new_vm)

        if persistable and not vm.state.not_public:
            vm.state.vms[key] = new_vm
        return new_vm

    def _register_ref(self, target: Instance, vm: Instance) -> None:
        ref = vm.el.dirs.get("ref") if vm.el is not None else None
        if not ref or not ref.value:
            return

        name = dash_to_camel(str(ref.value))
        parent = vm.state.parent
        if vm.state.is_repeat or (parent is not None and parent.state.not_public):
            target.refs.setdefault(name, []).append(vm)
        else:
            target.refs[name] = vm

    def add_light_child(self, vm: Instance, ctx: ChildContext) -> Instance:
        index = ctx.child_index if ctx.child_index is not None else self.reserve_slot(vm)
        ctx.parent = vm
        ctx.filters = vm.options.filters

        new_vm = self.init_light_view_model(ctx)
        new_vm.state.ready_slot = vm.state.child_slots[index]
        vm.state.children[index] = new_vm
        return new_vm

    # -- construction -----------------------------------------------------

    def create_root(self, constructor: Any, element: Optional[ElementNode] = None) -> Instance:
        ctx = ChildContext(
            element=element or document_node(),
            component=constructor,
            component_name=constructor.name,
            is_component=True,
        )
        return self.init_view_model(ctx)

    def init_view_model(self, ctx: ChildContext) -> Instance:
        parent = ctx.parent
        vm = Instance(ctx.element)
        state = vm.state

        options = ctx.component() if ctx.is_component else ComponentOptions()
        data: Dict[str, Any] = {}
        if not ctx.is_component and ctx.is_repeat and parent is not None:
            for name, value in parent.data.items():
                if not is_system_prop(name, parent):
                    data[name] = value
            vm.methods.update(parent.methods)
        if parent is not None and options.inherit:
            self.inherit_data(data, parent)
        for name, value in self.global_data.items():
            data.setdefault(name, value)
        vm.data.update(data)

        state.parent = parent
        state.logger = self.logger
        state.loop = self.loop
        state.is_component = ctx.is_component
        state.is_repeat = ctx.is_repeat

        strict = self.config.strict
        for kind in ASSET_KINDS:
            merged = merge_registries(strict, self.registries.get(kind, {}), getattr(ctx, kind), getattr(options, kind))
            setattr(options, kind, merged)
        # A component can always render itself recursively by its own name
        if options.name and ctx.component is not None:
            options.components[options.name] = ctx.component
        vm.options = options

        self.set_refs_and_els(vm)
        vm.el = ctx.element
        vm.parent = ctx.parent_link or parent
        vm.root = parent.root if parent is not None else vm
        vm.children = []

        if ctx.is_component:
            template = self.init_template(vm)
            if parent is None:
                if not template:
                    self.logger.error("There is no root template", vm)
                state.not_ready_count = 0
                state.to_rebuild = False
                state.mixin = self.mixin
            self.set_key_element_inner(vm, template)
            for name, method in options.methods.items():
                vm.methods[name] = types.MethodType(method, vm)
            self.set_event_listeners(vm)

        self.mark_key_element(vm)
        self.init_data(vm)
        self.binder.pull_props(vm)

        if ctx.repeat_data:
            vm.data.update(ctx.repeat_data)

        self.bind_option_events(vm)
        self.build_computed_props(vm)

        lifecycle = self.lifecycle
        created_fired = lifecycle.call_hook_mixin(vm, "on_created")
        created_fired = lifecycle.call_hook(vm, "on_created") or created_fired

        self.build_with_data(vm, ctx)
        if created_fired:
            self.build_computed_props(vm)

        lifecycle.update_not_ready_count(vm, +1)
        lifecycle.build(vm, lambda: self._on_built(vm, ctx))
        return vm

    def _on_built(self, vm: Instance, ctx: ChildContext) -> None:
        lifecycle = self.lifecycle
        options = vm.options
        parent = vm.state.parent
        vm.is_compiled = True

        to_rebuild = False

        def mark_rebuild() -> None:
            nonlocal to_rebuild
            to_rebuild = True

        is_repeat_instance = vm.state.is_repeat or (parent is not None and parent.state.not_public)

        if not is_repeat_instance and not options.on_activate and ctx.wait_for:
            vm.once(ctx.wait_for, lambda *args: lifecycle.activated(vm))

        lifecycle.call_hook_mixin(vm, "on_compiled", mark_rebuild)
        lifecycle.call_hook(vm, "on_compiled", mark_rebuild)

        if not is_repeat_instance:
            lifecycle.call_hook(vm, "on_activate")
            # Readiness is reported later by `done()` or the awaited event
            if ctx.wait_for or options.on_activate:
                return
        elif options.on_activate:
            self.logger.warn("on_activate is not supported on repeat items", vm)

        if to_rebuild:
            if vm is not vm.root:
                lifecycle.reset_vm_instance(vm)
                lifecycle.update_not_ready_count(vm, -1)
                return
            vm.state.to_rebuild = True

        vm.is_ready = True
        lifecycle.update_not_ready_count(vm, -1)

    def init_light_view_model(self, ctx: ChildContext) -> Instance:
        """Scope-only instance for a `for` item: no hooks, no registries of its own."""
        parent = ctx.parent
        vm = Instance(ctx.element)
        state = vm.state

        for name, value in parent.data.items():
            if not is_system_prop(name, parent) and name not in vm.data:
                vm.data[name] = value
        vm.methods.update(parent.methods)

        state.parent = parent
        state.logger = self.logger
        state.loop = self.loop
        state.not_public = True
        state.is_repeat = ctx.is_repeat
        vm.options.filters = merge_registries(self.config.strict, self.registries.get("filters", {}), ctx.filters, None)

        self.set_refs_and_els(vm)
        vm.el = ctx.element
        vm.parent = ctx.parent_link or parent
        vm.root = parent.root
        vm.children = []

        self.mark_key_element(vm)
        if ctx.repeat_data:
            vm.data.update(ctx.repeat_data)

        lifecycle = self.lifecycle
        lifecycle.update_not_ready_count(vm, +1)

        def on_built() -> None:
            vm.is_compiled = True
            vm.is_ready = True
            lifecycle.update_not_ready_count(vm, -1)

        lifecycle.build(vm, on_built)
        return vm

    # -- pieces -----------------------------------------------------------

    def inherit_data(self, data: Dict[str, Any], parent: Instance) -> None:
        for name, value in parent.data.items():
            if name not in data and not is_system_prop(name, parent):
                data[name] = value

    def set_refs_and_els(self, vm: Instance) -> None:
        vm.refs = {}
        vm.els = {}

    def init_template(self, vm: Instance) -> Optional[List[ElementNode]]:
        template = vm.options.template
        if template is None:
            return None
        try:
            nodes = template() if callable(template) else [n.clone() for n in template]
        except Exception as e:
            self.logger.error(f"Template of component raised {type(e).__name__}: {e}", vm, exc=e)
            return None
        if isinstance(nodes, ElementNode):
            nodes = [nodes]
        return list(nodes or [])

    def set_key_element_inner(self, vm: Instance, template: Optional[List[ElementNode]]) -> None:
        template = template or []

        if vm.state.parent is None:
            vm.el = document_node(template)
            vm.el.snapshot = [n.clone() for n in template]
            return

        el = vm.el
        el.original = {"name": el.name, "inner": el.inner}

        if template:
            replace = vm.options.replace
            if replace is None:
                replace = self.config.replace
            if replace:
                el.name = "$merge" if len(template) == 1 else "template"
            el.inner = template
        else:
            el.name = "template"
            el.inner = []
            el.component_empty_template = True

        el.is_ready_to_build = False
        el.snapshot = [n.clone() for n in template]

    def mark_key_element(self, vm: Instance) -> None:
        el = vm.el
        el.is_key_element = True
        if vm.state.is_component and not vm.state.is_repeat:
            el.compile_self_in_parent = True

    def init_data(self, vm: Instance) -> None:
        for mixin in vm.options.mixins:
            self._init_data_unit(vm, mixin.data)
        self._init_data_unit(vm, vm.options.data)

    def _init_data_unit(self, vm: Instance, data: Any) -> None:
        if data is None:
            return

        # A shared mapping is only safe on the root, which exists once
        if isinstance(data, Mapping) and vm.state.parent is None:
            vm.data.update(data)
            return

        if not callable(data):
            self.logger.warn("The data option type is not valid", vm)
            return

        try:
            values = data(vm)
        except Exception as e:
            self.logger.warn(f"The data option raised {type(e).__name__}: {e}", vm, exc=e)
            return

        if isinstance(values, Mapping):
            vm.data.update(values)
        elif values is not None:
            self.logger.warn("The data option must return a mapping", vm)

    def build_computed_props(self, vm: Instance) -> None:
        for name, item in vm.options.computed.items():
            getter = item if callable(item) else None
            if getter is None and isinstance(item, Mapping):
                getter = item.get("get")
            if getter is None:
                self.logger.debug(f'Computed property "{name}" has no getter', vm)
                continue
            try:
                vm.data[name] = getter(vm)
            except Exception as e:
                self.logger.debug(f'Computed property "{name}" compilation error: {e}', vm)

    def build_with_data(self, vm: Instance, ctx: ChildContext) -> None:
        parent = vm.state.parent
        if parent is None:
            return

        if ctx.with_replace_data is not None:
            vm.state.has_with_data = True
            for name in list(vm.data):
                if not is_system_prop(name) and name not in vm.options.methods:
                    del vm.data[name]
            value = self.evaluator.get_value(parent, ctx.with_replace_data)
            if isinstance(value, Mapping):
                vm.data.update(value)

        if ctx.with_data:
            vm.state.has_with_data = True
            for item in ctx.with_data:
                if item.arg:
                    vm.data[dash_to_camel(item.arg)] = self.evaluator.get_value(parent, item.get)

    # -- events -----------------------------------------------------------

    def set_event_listeners(self, vm: Instance) -> None:
        lifecycle = self.lifecycle

        def on_ready(*args: Any) -> None:
            lifecycle.call_hook_mixin(vm, "on_ready")
            lifecycle.call_hook(vm, "on_ready")

        def on_stop(*args: Any) -> None:
            vm.el.building_interrupted = True

        vm.on(REBUILD_COMPUTED, lambda *args: self.build_computed_props(vm))
        vm.on(STOP_BUILDING, on_stop)
        vm.on(READY_TO_COMPILE, on_ready)

        handlers = vm.el.dirs.get("on") if vm.el is not None else None
        for name, directive in (handlers or {}).items():
            self.set_template_event_handler(vm, directive, event_name(name))

    def set_template_event_handler(self, vm: Instance, directive: Directive, name: str) -> None:
        """`on:<event>` on a component host runs in the host's parent scope."""
        value = directive.value
        scope = vm.parent or vm.state.parent
        if scope is None or value is None:
            return

        def handler(*args: Any) -> Any:
            if value.has_args:
                return self.evaluator.get_value(scope, value.handler)
            fn = self.evaluator.get_value(scope, value.handler)
            if callable(fn):
                return fn(*args)
            self.logger.warn(f'Handler for "{name}" is not callable', vm)
            return None

        vm.on(name, handler)

    def bind_option_events(self, vm: Instance) -> None:
        for name, handler in vm.options.events.items():
            vm.on(name, types.MethodType(handler, vm))


def event_name(name: str) -> str:
    """`hook:on-created` -> `hook:on_created`; other names are kept."""
    if name.startswith("hook:"):
        return "hook:" + name[len("hook:"):].replace("-", "_")
    return name
