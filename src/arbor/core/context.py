"""Construction context handed from the directive processor to the factory."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from arbor.core.element import DirectiveValue, ElementNode
    from arbor.core.instance import Instance
    from arbor.core.options import ComponentConstructor


@dataclass
class ChildContext:
    """Everything the factory needs to create one child instance."""

    element: "ElementNode"
    parent: Optional["Instance"] = None
    # Nearest public ancestor; differs from `parent` under light instances
    parent_link: Optional["Instance"] = None

    component: Optional["ComponentConstructor"] = None
    component_name: Optional[str] = None
    is_component: bool = False
    is_repeat: bool = False

    # Loop-supplied scope for repeat/for items
    repeat_data: Optional[Dict[str, Any]] = None

    with_data: Optional[List["DirectiveValue"]] = None
    with_replace_data: Any = None
    wait_for: Optional[str] = None

    # Registries inherited from the parent (inheriting mode)
    filters: Dict[str, Any] = field(default_factory=dict)
    partials: Dict[str, Any] = field(default_factory=dict)
    components: Dict[str, Any] = field(default_factory=dict)

    # Reserved position in the parent's declared children
    child_index: Optional[int] = None
