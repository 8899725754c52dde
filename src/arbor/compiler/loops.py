"""Loop expansion for the `for` and legacy `repeat` directives."""

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from arbor.compiler.exceptions import FilterError
from arbor.core.context import ChildContext
from arbor.core.element import DirectiveValue, ElementNode, merge_node

if TYPE_CHECKING:
    from arbor.compiler.directives import DirectiveProcessor
    from arbor.core.instance import Instance
    from arbor.runtime.expressions import Evaluator
    from arbor.runtime.factory import InstanceFactory
    from arbor.runtime.logging import BuildLogger

# Reserved names a loop item exposes when no identifier is declared
KEY_NAME = "_key"
VALUE_NAME = "_value"
INDEX_NAME = "_index"

_NUMERIC_RE = re.compile(r"^\s*\d+\s*$")


class MappingEntry:
    """One key/value pair of a mapping being looped over."""

    __slots__ = ("key", "value")

    def __init__(self, key: Any, value: Any) -> None:
        self.key = key
        self.value = value

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, MappingEntry) and (self.key, self.value) == (other.key, other.value)

    def __repr__(self) -> str:
        return f"MappingEntry({self.key!r}, {self.value!r})"


def normalize_source(value: Any) -> List[Any]:
    """Turn a loop source into a list.

    A mapping becomes `MappingEntry` pairs in mapping order, a non-negative
    integer (or numeric string) N becomes `[0, ..., N-1]`.
    """
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Mapping):
        return [MappingEntry(k, v) for k, v in value.items()]
    if isinstance(value, bool):
        return []
    if isinstance(value, int):
        return list(range(value)) if value > 0 else []
    if isinstance(value, float):
        return list(range(int(value))) if value.is_integer() and value > 0 else []
    if isinstance(value, str):
        return list(range(int(value))) if _NUMERIC_RE.match(value) else []
    try:
        return list(value)
    except TypeError:
        return []


def build_item_context(value: DirectiveValue, entry: Any, index: int) -> Dict[str, Any]:
    """Scope data for the loop item at `index`.

    A declared alias takes precedence over fields of a mapping item.
    """
    is_pair = isinstance(entry, MappingEntry)
    item = entry.value if is_pair else entry

    context: Dict[str, Any]
    if value.arg:
        context = {value.arg: item}
    elif isinstance(item, Mapping):
        context = dict(item)
    else:
        context = {VALUE_NAME: item}

    if is_pair:
        context[KEY_NAME] = entry.key

    context[value.index or INDEX_NAME] = index
    return context


class LoopExpander:
    """Expands a loop-bearing node into one clone per item."""

    def __init__(
        self,
        evaluator: "Evaluator",
        logger: "BuildLogger",
        factory: "InstanceFactory",
        processor: "DirectiveProcessor",
    ) -> None:
        self.evaluator = evaluator
        self.logger = logger
        self.factory = factory
        self.processor = processor

    def get_repeat_data(self, vm: "Instance", value: DirectiveValue) -> Optional[List[Any]]:
        source = self.evaluator.get_value(vm, value.get)
        if not source:
            return None

        items: Any = normalize_source(source)
        try:
            items = self.evaluator.apply_filters(vm, value.filters, items)
        except FilterError as e:
            self.logger.warn(str(e), vm, exc=e.cause)
            items = e.partial

        if items is None:
            return None
        if not isinstance(items, list):
            items = normalize_source(items)
        return items

    def _clone(self, element: ElementNode, directive_name: str) -> ElementNode:
        clone = element.clone()
        clone.dirs[directive_name].is_compiled = True
        # Custom-tag components only carry the directive after matching
        if element.dirs.get("component"):
            clone.dirs["component"] = element.dirs["component"]
        return clone

    def expand_for(self, vm: "Instance", element: ElementNode) -> List[ElementNode]:
        """Each item gets a `$merge` wrapper scoped by a light instance."""
        value = element.dirs["for"].value
        items = self.get_repeat_data(vm, value)
        if not items:
            return []

        wrappers = []
        for i, entry in enumerate(items):
            context = build_item_context(value, entry, i)
            wrapper = merge_node(self._clone(element, "for"))
            wrappers.append(wrapper)
            self.factory.add_light_child(
                vm, ChildContext(element=wrapper, is_repeat=True, repeat_data=context)
            )
        return wrappers

    def expand_repeat(self, vm: "Instance", element: ElementNode) -> List[ElementNode]:
        """Each item gets a full child instance (or component instance)."""
        value = element.dirs["repeat"].value
        items = self.get_repeat_data(vm, value)
        if not items:
            return []

        clones = []
        for i, entry in enumerate(items):
            context = build_item_context(value, entry, i)
            clone = self._clone(element, "repeat")
            clones.append(clone)
            if clone.dirs.get("component"):
                self.processor.build_component(vm, clone, is_repeat=True, repeat_data=context)
            else:
                self.factory.add_child(
                    vm, ChildContext(element=clone, is_repeat=True, repeat_data=context)
                )
        return clones
