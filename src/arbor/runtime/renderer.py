"""Renderer facade: registries, configuration and one build per render call."""

import asyncio
from typing import Any, Dict, Optional

from arbor.compiler.assets import ASSET_KINDS, lookup
from arbor.compiler.directives import DirectiveProcessor
from arbor.compiler.exceptions import BuildTimeoutError, ComponentResolveError
from arbor.compiler.props import PropsBinder
from arbor.compiler.resolver import ComponentResolver
from arbor.core.instance import Instance
from arbor.core.options import as_options, is_constructor
from arbor.runtime.config import RendererConfig
from arbor.runtime.expressions import Evaluator, JinjaEvaluator
from arbor.runtime.factory import InstanceFactory
from arbor.runtime.lifecycle import TRY_BEGIN_COMPILE, LifecycleCoordinator
from arbor.runtime.logging import BuildLogger

_DEFAULT = object()


class RenderSession:
    """The collaborators of one build, bound to the running loop."""

    def __init__(self, renderer: "Renderer", loop: asyncio.AbstractEventLoop) -> None:
        logger = renderer.logger
        self.loop = loop
        self.binder = PropsBinder(renderer.evaluator, logger)
        self.lifecycle = LifecycleCoordinator(logger, loop)
        self.resolver = ComponentResolver(logger, loop, renderer.mixin)
        self.factory = InstanceFactory(
            renderer.config,
            renderer.registries,
            logger,
            renderer.evaluator,
            self.binder,
            self.lifecycle,
            loop,
            mixin=renderer.mixin,
            global_data=renderer.global_data,
        )
        self.processor = DirectiveProcessor(renderer.evaluator, logger, self.factory, self.resolver)
        self.lifecycle.factory = self.factory
        self.lifecycle.processor = self.processor


class Renderer:
    """Builds instance trees from a root component.

    Usage:
        renderer = Renderer(components={"todo-item": TodoItem})
        root = renderer.render_sync(App)
    """

    def __init__(
        self,
        config: Optional[RendererConfig] = None,
        components: Optional[Dict[str, Any]] = None,
        partials: Optional[Dict[str, Any]] = None,
        filters: Optional[Dict[str, Any]] = None,
        mixin: Any = None,
        global_data: Optional[Dict[str, Any]] = None,
        evaluator: Optional[Evaluator] = None,
        logger: Optional[BuildLogger] = None,
    ) -> None:
        self.config = config or RendererConfig()
        self.logger = logger or BuildLogger()
        self.evaluator = evaluator or JinjaEvaluator(self.logger)
        self.registries: Dict[str, Dict[str, Any]] = {
            "components": dict(components or {}),
            "partials": dict(partials or {}),
            "filters": dict(filters or {}),
        }
        self.mixin = as_options(mixin, self.logger) if mixin else None
        self.global_data = dict(global_data or {})

    def register(self, kind: str, name: str, value: Any) -> None:
        if kind not in ASSET_KINDS:
            raise ValueError(f"Unknown asset kind: {kind}")
        self.registries[kind][name] = value

    def component(self, name: str, definition: Any) -> None:
        self.register("components", name, definition)

    def partial(self, name: str, template: Any) -> None:
        self.register("partials", name, template)

    def filter(self, name: str, fn: Any) -> None:
        self.register("filters", name, fn)

    async def _root_constructor(self, session: RenderSession, component: Any) -> Any:
        name = None
        if isinstance(component, str):
            name, ref = lookup(self.registries["components"], component)
            if ref is None:
                raise ComponentResolveError(component, "not registered")
            component = ref

        resolved = session.resolver.resolve(None, component, name)
        if resolved is None:
            raise ComponentResolveError(name, f"unsupported definition type {type(component).__name__}")
        if is_constructor(resolved):
            return resolved
        return await resolved

    async def render(self, component: Any, timeout: Any = _DEFAULT) -> Instance:
        """Build the tree of `component` and return its root once ready.

        Raises BuildTimeoutError if the tree is not ready within `timeout`
        seconds (defaults to `config.build_timeout`).
        """
        loop = asyncio.get_running_loop()
        session = RenderSession(self, loop)
        constructor = await self._root_constructor(session, component)

        ready: "asyncio.Future[Instance]" = loop.create_future()
        root = session.factory.create_root(constructor)

        def on_try_begin_compile(*args: Any) -> None:
            if ready.done():
                return
            session.lifecycle.broadcast_ready(root)
            ready.set_result(root)

        root.on(TRY_BEGIN_COMPILE, on_try_begin_compile)

        if timeout is _DEFAULT:
            timeout = self.config.build_timeout
        try:
            return await asyncio.wait_for(ready, timeout)
        except asyncio.TimeoutError:
            session.lifecycle.stop_building(root)
            pending = root.state.not_ready_count
            raise BuildTimeoutError(
                f"Tree was not ready after {timeout}s ({pending} instance(s) pending)"
            ) from None

    def render_sync(self, component: Any, timeout: Any = _DEFAULT) -> Instance:
        return asyncio.run(self.render(component, timeout))
