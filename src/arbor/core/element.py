"""Element tree nodes and directive descriptors."""

import copy
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

_ids = itertools.count(1)


def _next_id() -> int:
    return next(_ids)


@dataclass
class FilterCall:
    """A single step of a filter pipeline: `value | name(args...)`."""

    name: str
    args: List[Any] = field(default_factory=list)


@dataclass
class DirectiveValue:
    """Parsed value of a directive."""

    get: Any = None
    filters: List[FilterCall] = field(default_factory=list)
    arg: Optional[str] = None
    index: Optional[str] = None

    # Event handler directives (on:*)
    handler: Union[str, Callable[..., Any], None] = None
    has_args: bool = False


@dataclass
class Directive:
    value: Any = None
    options: Dict[str, Any] = field(default_factory=dict)
    is_compiled: bool = False
    status: Optional[str] = None


@dataclass(eq=False)
class ElementNode:
    """A node of the element tree.

    `dirs` maps a directive name to a `Directive`. Two directive kinds are
    keyed by argument instead: `dirs["bind"]` and `dirs["on"]` hold a
    name -> `Directive` mapping.
    """

    type: str = "tag"
    name: Optional[str] = None
    attribs: Dict[str, Any] = field(default_factory=dict)
    dirs: Dict[str, Any] = field(default_factory=dict)
    inner: List["ElementNode"] = field(default_factory=list)
    text: Optional[str] = None
    id: int = field(default_factory=_next_id)

    # Build bookkeeping
    is_key_element: bool = False
    is_ready_to_build: bool = False
    compile_self_in_parent: bool = False
    building_interrupted: bool = False
    component_empty_template: bool = False
    props: Dict[str, Any] = field(default_factory=dict)
    original: Optional[Dict[str, Any]] = None
    snapshot: Optional[List["ElementNode"]] = None

    def clone(self) -> "ElementNode":
        """Return an independent deep copy that keeps the same identity id."""
        return copy.deepcopy(self)

    def bound(self, name: str) -> Optional[Directive]:
        binds = self.dirs.get("bind")
        if binds:
            return binds.get(name)
        return None

    def has_directive(self, name: str) -> bool:
        return bool(self.dirs.get(name))

    def __repr__(self) -> str:
        if self.type == "text":
            return f"ElementNode(text={self.text!r})"
        return f"ElementNode({self.type}:{self.name}, id={self.id}, inner={len(self.inner)})"


def element(
    name: str,
    attribs: Optional[Dict[str, Any]] = None,
    *inner: ElementNode,
    dirs: Optional[Dict[str, Any]] = None,
) -> ElementNode:
    """Build a tag node.

    Usage:
        element("ul", None, element("li", dirs={"for": Directive(DirectiveValue("items"))}))
    """
    return ElementNode(
        type="tag",
        name=name,
        attribs=dict(attribs or {}),
        dirs=dict(dirs or {}),
        inner=list(inner),
    )


def component_tag(
    component: str,
    attribs: Optional[Dict[str, Any]] = None,
    *inner: ElementNode,
    dirs: Optional[Dict[str, Any]] = None,
) -> ElementNode:
    """`<component is="...">` host for a registered component name."""
    attribs = dict(attribs or {})
    attribs["is"] = component
    return element("component", attribs, *inner, dirs=dirs)


def text(content: str) -> ElementNode:
    return ElementNode(type="text", text=content)


def directive(
    get: Any = None,
    filters: Optional[List[FilterCall]] = None,
    arg: Optional[str] = None,
    index: Optional[str] = None,
    **options: Any,
) -> Directive:
    """Shorthand for a directive holding a single `DirectiveValue`."""
    return Directive(
        value=DirectiveValue(get=get, filters=list(filters or []), arg=arg, index=index),
        options=options,
    )


def merge_node(*inner: ElementNode) -> ElementNode:
    """Synthetic container whose children are merged into its parent on output."""
    return ElementNode(type="tag", name="$merge", inner=list(inner))


def content_node(inner: List[ElementNode]) -> ElementNode:
    """Synthetic content-slot node holding a component host's original content."""
    return ElementNode(type="$content", name="$content", inner=inner)


def document_node(inner: Optional[List[ElementNode]] = None) -> ElementNode:
    return ElementNode(type="document", name=None, inner=list(inner or []))


def walk(nodes: List[ElementNode]):
    """Yield every node of the given forest, depth first."""
    for node in nodes:
        yield node
        if node.inner:
            yield from walk(node.inner)
