"""Expression evaluation against instance scopes (Jinja2 backed)."""

from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Optional, Protocol, Union

from jinja2 import Environment, TemplateError
from markupsafe import escape

from arbor.compiler.assets import get_asset, lookup
from arbor.compiler.exceptions import FilterError
from arbor.core.element import FilterCall

if TYPE_CHECKING:
    from arbor.core.instance import Instance
    from arbor.runtime.logging import BuildLogger

FilterSpec = Union[FilterCall, str]


class Evaluator(Protocol):
    def execute(
        self,
        vm: "Instance",
        value: Any,
        filters: Optional[Iterable[FilterSpec]] = None,
        is_escape: bool = False,
        is_clean: bool = False,
    ) -> Any: ...

    def get_value(self, vm: "Instance", expr: Any) -> Any: ...

    def apply_filters(self, vm: "Instance", filters: Optional[Iterable[FilterSpec]], value: Any) -> Any: ...


class JinjaEvaluator:
    """Evaluates expression strings with `Environment.compile_expression`.

    Names resolve against the instance's data, methods and `_parent`/`_root`
    handles. Callables are invoked with the instance; any other non-string
    value is a literal.
    """

    def __init__(self, logger: "BuildLogger", environment: Optional[Environment] = None) -> None:
        self.logger = logger
        self.environment = environment or Environment()
        self._compiled: Dict[str, Callable[..., Any]] = {}

    def _compile(self, expr: str) -> Callable[..., Any]:
        compiled = self._compiled.get(expr)
        if compiled is None:
            compiled = self.environment.compile_expression(expr)
            self._compiled[expr] = compiled
        return compiled

    def get_value(self, vm: "Instance", expr: Any) -> Any:
        if callable(expr):
            try:
                return expr(vm)
            except Exception as e:
                self.logger.debug(f"Expression {expr!r} failed: {e}", vm)
                return None

        if not isinstance(expr, str):
            return expr

        if not expr.strip():
            return None

        try:
            return self._compile(expr)(vm.context())
        except TemplateError as e:
            self.logger.debug(f'Expression "{expr}" failed: {e}', vm)
        except Exception as e:
            self.logger.debug(f'Expression "{expr}" raised {type(e).__name__}: {e}', vm)
        return None

    def apply_filters(self, vm: "Instance", filters: Optional[Iterable[FilterSpec]], value: Any) -> Any:
        """Run a filter pipeline; raises FilterError carrying the partial value."""
        if not filters:
            return value

        registry = get_asset(vm, "filters")
        for spec in filters:
            call = FilterCall(spec) if isinstance(spec, str) else spec
            _, fn = lookup(registry, call.name)
            if fn is None:
                self.logger.warn(f'There is no filter "{call.name}"', vm)
                continue
            args = [self.get_value(vm, arg) if callable(arg) else arg for arg in call.args]
            try:
                value = fn(value, *args)
            except Exception as e:
                raise FilterError(call.name, value, e) from e
        return value

    def execute(
        self,
        vm: "Instance",
        value: Any,
        filters: Optional[Iterable[FilterSpec]] = None,
        is_escape: bool = False,
        is_clean: bool = False,
    ) -> Any:
        result = self.get_value(vm, value)

        if filters:
            try:
                result = self.apply_filters(vm, filters, result)
            except FilterError as e:
                self.logger.warn(str(e), vm)
                result = e.partial

        if is_clean and result is None:
            result = ""
        if is_escape:
            result = str(escape("" if result is None else result))
        return result
