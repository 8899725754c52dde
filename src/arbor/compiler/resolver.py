"""Turning component references into constructors."""

import asyncio
import inspect
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional, Union

from arbor.compiler.assets import get_asset
from arbor.compiler.exceptions import ComponentResolveError
from arbor.core.options import (
    ComponentConstructor,
    ComponentOptions,
    compose_component,
    is_constructor,
)

if TYPE_CHECKING:
    from arbor.core.instance import Instance
    from arbor.runtime.logging import BuildLogger

Resolution = Union[ComponentConstructor, "asyncio.Future[ComponentConstructor]", None]


class ComponentResolver:
    """Resolves a registry entry to a constructor.

    Entries are one of: a `ComponentConstructor` (returned as is), a
    descriptor (mapping or `ComponentOptions`, composed once and cached back
    into the registry), a coroutine function (awaited, result composed) or a
    plain callable async factory called as `factory(resolve, reject)`.
    Async entries resolve to a future; they never raise into the caller.
    """

    def __init__(self, logger: "BuildLogger", loop: asyncio.AbstractEventLoop, mixin: Any = None) -> None:
        self.logger = logger
        self.loop = loop
        self.mixin = mixin

    def resolve(self, vm: Optional["Instance"], ref: Any, name: Optional[str]) -> Resolution:
        if is_constructor(ref):
            return ref

        if isinstance(ref, (Mapping, ComponentOptions)):
            composed = self.compose(ref)
            if vm is not None and name:
                get_asset(vm, "components")[name] = composed
            return composed

        if inspect.iscoroutinefunction(ref):
            return self._resolve_coroutine(vm, ref, name)

        if callable(ref):
            return self._resolve_factory(vm, ref, name)

        self.logger.warn(f'Component "{name}" has an unsupported definition type {type(ref).__name__}', vm)
        return None

    def compose(self, descriptor: Any) -> ComponentConstructor:
        return compose_component(self.logger, descriptor, self.mixin)

    def _settle(self, vm: "Instance", future: "asyncio.Future[Any]", name: Optional[str], value: Any) -> None:
        if future.done():
            self.logger.debug(f'Component "{name}" settled more than once', vm)
            return
        if value is None:
            future.set_exception(ComponentResolveError(name, "factory resolved with nothing"))
            return
        try:
            constructor = value if is_constructor(value) else self.compose(value)
        except Exception as e:
            future.set_exception(ComponentResolveError(name, e))
            return
        # Later lookups skip the factory
        if vm is not None and name:
            get_asset(vm, "components")[name] = constructor
        future.set_result(constructor)

    def _reject(self, vm: "Instance", future: "asyncio.Future[Any]", name: Optional[str], reason: Any = None) -> None:
        if not future.done():
            future.set_exception(ComponentResolveError(name, reason))

    def _resolve_factory(self, vm: "Instance", factory: Any, name: Optional[str]) -> "asyncio.Future[Any]":
        future: "asyncio.Future[Any]" = self.loop.create_future()

        def resolve(value: Any) -> None:
            self._settle(vm, future, name, value)

        def reject(reason: Any = None) -> None:
            self._reject(vm, future, name, reason)

        try:
            factory(resolve, reject)
        except Exception as e:
            reject(e)
        return future

    def _resolve_coroutine(self, vm: "Instance", factory: Any, name: Optional[str]) -> "asyncio.Future[Any]":
        future: "asyncio.Future[Any]" = self.loop.create_future()

        async def runner() -> None:
            try:
                value = await factory()
            except Exception as e:
                self._reject(vm, future, name, e)
                return
            self._settle(vm, future, name, value)

        self.loop.create_task(runner())
        return future

    def log_resolve_error(self, vm: "Instance", name: Optional[str], reason: Any = None) -> None:
        message = f'Failed to resolve component: "{name or ""}"'
        if reason:
            message += f". Reason: {reason}"
        if name:
            self.logger.warn(message, vm)
        else:
            self.logger.debug(message, vm)
