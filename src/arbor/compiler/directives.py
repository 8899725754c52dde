"""Directive expansion over element lists."""

import asyncio
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from arbor.compiler.assets import (
    dash_to_camel,
    get_asset,
    is_native_tag,
    lookup,
    resolve_partial,
)
from arbor.compiler.loops import LoopExpander
from arbor.core.context import ChildContext
from arbor.core.element import Directive, ElementNode, content_node
from arbor.core.options import ComponentConstructor

if TYPE_CHECKING:
    from arbor.compiler.resolver import ComponentResolver
    from arbor.core.instance import Instance
    from arbor.runtime.expressions import Evaluator
    from arbor.runtime.factory import InstanceFactory
    from arbor.runtime.logging import BuildLogger

# Returned by a pipeline step that changed the sibling list at the current index
_RESTART = object()


class DirectiveProcessor:
    """Walks an element list applying directives in priority order.

    Steps that splice the sibling list (loops, falsy conditionals,
    content wrapping) restart at the same index against the mutated list,
    so every produced node runs the full pipeline before it is final.
    """

    def __init__(
        self,
        evaluator: "Evaluator",
        logger: "BuildLogger",
        factory: "InstanceFactory",
        resolver: "ComponentResolver",
    ) -> None:
        self.evaluator = evaluator
        self.logger = logger
        self.factory = factory
        self.resolver = resolver
        self.loops = LoopExpander(evaluator, logger, factory, self)

    def build_elements(self, vm: "Instance", elements: List[ElementNode], start: int = 0) -> None:
        i = start
        while i < len(elements):
            element = elements[i]

            if element.type == "tag" and self._apply_pipeline(vm, elements, i, element) is _RESTART:
                continue

            # Key elements of other instances are built by those instances
            if element.inner and not (element.is_key_element and not element.is_ready_to_build):
                self.build_elements(vm, element.inner)
            i += 1

    def _apply_pipeline(
        self, vm: "Instance", elements: List[ElementNode], i: int, element: ElementNode
    ) -> Any:
        dirs = element.dirs

        self._match_custom_tag(vm, element)

        if element.attribs.get("is") is not None or element.bound("is") is not None:
            dirs["component"] = Directive(value=self.get_attribute(vm, element, "is"))

        loop_for = dirs.get("for")
        if loop_for and not loop_for.is_compiled:
            del elements[i]
            elements[i:i] = self.loops.expand_for(vm, element)
            return _RESTART

        condition = dirs.get("if")
        if condition and not dirs.get("repeat"):
            passed = self.evaluator.execute(
                vm, condition.value.get, condition.value.filters, is_escape=False, is_clean=False
            )
            if not passed:
                del elements[i]
                return _RESTART

        if element.name == "partial":
            partial = resolve_partial(vm, self.get_attribute(vm, element, "name"))
            if partial is None:
                element.inner = []
            else:
                element.inner = partial() if callable(partial) else [n.clone() for n in partial]

        repeat = dirs.get("repeat")
        if repeat:
            if not repeat.is_compiled:
                del elements[i]
                elements[i:i] = self.loops.expand_repeat(vm, element)
                return _RESTART
        elif dirs.get("component"):
            if element.inner:
                # Host content goes into a slot node ahead of the host
                content = content_node(element.inner)
                element.inner = []
                elements.insert(i, content)
                return _RESTART
            self.build_component(vm, element)

        ref_el = dirs.get("el")
        if ref_el and ref_el.value:
            self.factory.real_parent(vm).els[dash_to_camel(str(ref_el.value))] = element

        return None

    def _match_custom_tag(self, vm: "Instance", element: ElementNode) -> None:
        """<my-widget> becomes a component host if `myWidget`/`MyWidget` is registered."""
        if not element.name:
            return
        name, _ = lookup(get_asset(vm, "components"), element.name)
        if not name:
            return

        tag = element.name.lower()
        if is_native_tag(tag) and tag != "component":
            self.logger.debug(f'Native tag "{element.name}" matched component name "{name}"', vm)
            return

        element.dirs["component"] = Directive(value=name, options={"spare_inner_content": True})

    def get_attribute(self, vm: "Instance", element: ElementNode, name: str) -> Any:
        """Bound value if the attribute is bound, else its literal value."""
        bound = element.bound(name)
        if bound is not None:
            return self.evaluator.execute(vm, bound.value.get, bound.value.filters)
        return element.attribs.get(name)

    def build_component(
        self,
        vm: "Instance",
        element: ElementNode,
        is_repeat: bool = False,
        repeat_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        requested = element.dirs["component"].value
        name, ref = lookup(get_asset(vm, "components"), requested)

        if ref is None:
            element.inner = []
            element.dirs["component"].status = "unresolved"
            self.resolver.log_resolve_error(vm, requested)
            return

        context = ChildContext(
            element=element,
            is_component=True,
            is_repeat=is_repeat,
            repeat_data=repeat_data,
            component_name=name,
        )
        context.child_index = self.factory.reserve_slot(vm)
        # Claimed now so the parent does not walk it before the child builds
        element.is_key_element = True

        resolved = self.resolver.resolve(vm, ref, name)
        if isinstance(resolved, ComponentConstructor):
            context.component = resolved
            self.build_component_content(vm, element, context)
        elif resolved is None:
            self._fail_component(vm, element, context, name, "unsupported definition")
        else:
            generation = vm.state.build_generation
            resolved.add_done_callback(
                lambda future: self._on_resolved(vm, element, context, name, generation, future)
            )

    def _on_resolved(
        self,
        vm: "Instance",
        element: ElementNode,
        context: ChildContext,
        name: Optional[str],
        generation: int,
        future: "asyncio.Future[Any]",
    ) -> None:
        error = future.exception()

        if element.building_interrupted or vm.state.build_generation != generation:
            self.logger.debug(f'Dropping late resolution of component "{name}"', vm)
            self.factory.release_slot(vm, context.child_index, generation)
            return

        if error is not None:
            reason = getattr(error, "reason", None) or error
            self._fail_component(vm, element, context, name, reason)
            return

        context.component = future.result()
        self.build_component_content(vm, element, context)

    def _fail_component(
        self, vm: "Instance", element: ElementNode, context: ChildContext, name: Optional[str], reason: Any
    ) -> None:
        element.inner = []
        element.dirs["component"].status = "unresolved"
        self.resolver.log_resolve_error(vm, name, reason)
        self.factory.release_slot(vm, context.child_index, vm.state.build_generation)

    def build_component_content(self, vm: "Instance", element: ElementNode, context: ChildContext) -> None:
        wait_for = element.attribs.get("wait-for")
        if wait_for:
            context.wait_for = wait_for
            element.attribs["wait-for"] = None

        if element.attribs.get("is") is not None:
            element.attribs["is"] = None

        with_dir = element.dirs.get("with")
        if with_dir and with_dir.value:
            values = with_dir.value
            # A single unnamed value replaces the whole data context
            if len(values) == 1 and not values[0].arg:
                context.with_replace_data = values[0].get
            else:
                context.with_data = values

        self.factory.add_child(vm, context)
