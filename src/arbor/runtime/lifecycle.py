"""Build scheduling, readiness counting and in-place rebuilds."""

import asyncio
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from arbor.compiler.directives import DirectiveProcessor
    from arbor.core.instance import Instance
    from arbor.runtime.factory import InstanceFactory
    from arbor.runtime.logging import BuildLogger

# Internal lifecycle events
VM_READY = "arbor:vm_ready"
TRY_BEGIN_COMPILE = "arbor:try_begin_compile"
READY_TO_COMPILE = "arbor:ready_to_compile"
STOP_BUILDING = "arbor:stop_building"
REBUILD_COMPUTED = "arbor:rebuild_computed"


class LifecycleCoordinator:
    """Owns the root pending-build counter and drives (re)builds.

    Builds run as loop callbacks after the current synchronous pass. A build
    completes once every declared child slot future of the instance is done.
    """

    def __init__(self, logger: "BuildLogger", loop: asyncio.AbstractEventLoop) -> None:
        self.logger = logger
        self.loop = loop
        self.factory: Optional["InstanceFactory"] = None
        self.processor: Optional["DirectiveProcessor"] = None

    # -- building ---------------------------------------------------------

    def build(self, vm: "Instance", callback: Optional[Callable[[], Any]] = None) -> None:
        if vm.el is None:
            self.logger.error("No element in instance", vm)
            return
        self.loop.call_soon(self._run_build, vm, vm.state.build_generation, callback)

    def _run_build(self, vm: "Instance", generation: int, callback: Optional[Callable[[], Any]]) -> None:
        # The element was superseded by a reset of an ancestor
        if vm.el.building_interrupted or vm.state.build_generation != generation:
            return

        vm.el.is_ready_to_build = True
        self.processor.build_elements(vm, vm.el.inner)

        slots = list(vm.state.child_slots)
        if not slots:
            self._complete(vm, generation, callback)
            return

        gathered = asyncio.gather(*slots)
        gathered.add_done_callback(lambda _: self._complete(vm, generation, callback))

    def _complete(self, vm: "Instance", generation: int, callback: Optional[Callable[[], Any]]) -> None:
        if vm.state.build_generation != generation:
            return

        if callback:
            callback()

        vm.emit(VM_READY)
        slot = vm.state.ready_slot
        if slot is not None and not slot.done():
            slot.set_result(vm)

    # -- readiness --------------------------------------------------------

    def update_not_ready_count(self, vm: "Instance", change: int) -> None:
        root = vm.root
        state = root.state
        state.not_ready_count += change

        if state.not_ready_count == 0:
            if state.to_rebuild:
                self.reset_vm_instance(root)
                state.to_rebuild = False
            else:
                root.emit(TRY_BEGIN_COMPILE)

        if state.not_ready_count < 0:
            self.logger.warn("Deviance in instance ready check detected", root)

    def broadcast_ready(self, root: "Instance") -> None:
        root.emit(READY_TO_COMPILE)
        self._broadcast(root, READY_TO_COMPILE)

    def _broadcast(self, vm: "Instance", name: str) -> None:
        for child in list(vm.children):
            child.emit(name)
            self._broadcast(child, name)

    def stop_building(self, vm: "Instance") -> None:
        """Interrupt `vm` and every instance below it."""
        vm.emit(STOP_BUILDING)
        if vm.el is not None:
            vm.el.building_interrupted = True
        for child in vm.state.children:
            if child is not None:
                self.stop_building(child)

    # -- rebuilding -------------------------------------------------------

    def reset_vm_instance(self, vm: "Instance", new_el: Any = None) -> None:
        """Tear down the subtree and rebuild it, keeping identity and persisted components."""
        factory = self.factory
        snapshot = vm.el.snapshot if vm.el is not None else None

        factory.set_refs_and_els(vm)
        if new_el is not None:
            vm.el = new_el
            if vm.state.is_component and snapshot is not None:
                factory.set_key_element_inner(vm, [n.clone() for n in snapshot])
            factory.mark_key_element(vm)
        elif snapshot is not None:
            vm.el.inner = [n.clone() for n in snapshot]
            vm.el.is_ready_to_build = False

        vm.children = []
        state = vm.state
        state.children = []
        state.child_slots = []
        state.build_generation += 1
        state.vms_detached = state.vms
        state.vms = {}
        vm.is_ready = False

        # The root keeps its listeners (the renderer waits on them)
        if state.parent is not None:
            vm.events.reset()
            factory.set_event_listeners(vm)
            factory.bind_option_events(vm)

        factory.build_computed_props(vm)
        self.update_not_ready_count(vm, +1)

        def on_rebuilt() -> None:
            vm.is_ready = True
            self.update_not_ready_count(vm, -1)

        self.build(vm, on_rebuilt)

    # -- hooks ------------------------------------------------------------

    def call_hook(self, vm: "Instance", name: str, callback: Optional[Callable[[], Any]] = None) -> bool:
        hook = getattr(vm.options, name, None)
        present = hook is not None
        result = None

        if present:
            try:
                if name == "on_activate":
                    result = hook(vm, lambda: self.activated(vm))
                else:
                    result = hook(vm)
            except Exception as e:
                self.logger.error(f'Hook "{name}" raised {type(e).__name__}: {e}', vm, exc=e)

        vm.emit(f"hook:{name}")

        # A hook returning False explicitly reports that it changed nothing
        if present and callback and result is not False:
            callback()
        return present

    def call_hook_mixin(self, vm: "Instance", name: str, callback: Optional[Callable[[], Any]] = None) -> bool:
        fired = False
        for mixin in vm.options.mixins:
            hook = getattr(mixin, name, None)
            if hook is None:
                continue
            fired = True
            try:
                result = hook(vm)
            except Exception as e:
                self.logger.error(f'Mixin hook "{name}" raised {type(e).__name__}: {e}', vm, exc=e)
                result = None
            if callback and result is not False:
                callback()
        return fired

    def activated(self, vm: "Instance") -> None:
        vm.root.state.to_rebuild = True
        self.update_not_ready_count(vm, -1)
