"""Loading element trees and component descriptors from plain data (JSON)."""

import copy
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, List, Union

from arbor.compiler.exceptions import TreeLoadError
from arbor.core.element import Directive, DirectiveValue, ElementNode, FilterCall

# Directives whose value is a plain name rather than an expression
NAME_DIRECTIVES = {"ref", "el", "component"}
# Directives keyed by argument: {"bind": {"title": {...}}}
KEYED_DIRECTIVES = {"bind", "on"}

PROP_TYPES = {
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "list": list,
    "dict": dict,
}

_NODE_KEYS = {"type", "name", "attribs", "dirs", "inner", "text"}


def load_tree(data: Any, path: str = "") -> List[ElementNode]:
    """Turn a node dict, a string or a list of them into element nodes.

    Bare strings become text nodes. Raises TreeLoadError on malformed input.
    """
    if isinstance(data, (list, tuple)):
        return [load_node(item, f"{path}[{i}]") for i, item in enumerate(data)]
    return [load_node(data, path)]


def load_node(data: Any, path: str = "") -> ElementNode:
    if isinstance(data, str):
        return ElementNode(type="text", text=data)

    if not isinstance(data, Mapping):
        raise TreeLoadError(f"Expected a node object or string, got {type(data).__name__}", path)

    unknown = set(data) - _NODE_KEYS
    if unknown:
        raise TreeLoadError(f"Unknown node key(s): {', '.join(sorted(unknown))}", path)

    node_type = data.get("type", "tag")
    if node_type == "text":
        return ElementNode(type="text", text=str(data.get("text", "")))

    name = data.get("name")
    if node_type == "tag" and not name:
        raise TreeLoadError("Tag node without a name", path)

    attribs = data.get("attribs")
    if attribs is None:
        attribs = {}
    if not isinstance(attribs, Mapping):
        raise TreeLoadError("attribs must be an object", f"{path}.attribs")

    dirs = {
        dir_name: load_directive(dir_name, value, f"{path}.dirs.{dir_name}")
        for dir_name, value in (data.get("dirs") or {}).items()
    }

    inner = data.get("inner") or []
    return ElementNode(
        type=node_type,
        name=name,
        attribs=dict(attribs),
        dirs=dirs,
        inner=load_tree(inner, f"{path}.inner") if inner else [],
    )


def load_directive(name: str, data: Any, path: str = "") -> Any:
    if name in KEYED_DIRECTIVES:
        if not isinstance(data, Mapping):
            raise TreeLoadError(f'"{name}" must map names to directives', path)
        return {key: Directive(value=load_value(value, f"{path}.{key}")) for key, value in data.items()}

    if name in NAME_DIRECTIVES:
        return Directive(value=data)

    if name == "with":
        items = data if isinstance(data, list) else [data]
        return Directive(value=[load_value(item, f"{path}[{i}]") for i, item in enumerate(items)])

    return Directive(value=load_value(data, path))


def load_value(data: Any, path: str = "") -> DirectiveValue:
    """`"items"` or `{"get": "items", "arg": "item", "filters": ["upper"]}`."""
    if isinstance(data, str):
        return DirectiveValue(get=data)
    if not isinstance(data, Mapping):
        raise TreeLoadError(f"Expected an expression string or object, got {type(data).__name__}", path)

    filters = [load_filter(item, f"{path}.filters[{i}]") for i, item in enumerate(data.get("filters") or [])]
    return DirectiveValue(
        get=data.get("get"),
        filters=filters,
        arg=data.get("arg"),
        index=data.get("index"),
        handler=data.get("handler"),
        has_args=bool(data.get("has_args", False)),
    )


def load_filter(data: Any, path: str = "") -> FilterCall:
    if isinstance(data, str):
        return FilterCall(data)
    if isinstance(data, Mapping) and data.get("name"):
        return FilterCall(data["name"], list(data.get("args") or []))
    raise TreeLoadError("Filter must be a name or an object with a name", path)


def load_component(data: Any, path: str = "") -> Dict[str, Any]:
    """Component descriptor from plain data.

    `template` is a node list, `data` a plain object copied per instance,
    `props` a list of names or a mapping of name -> type name / descriptor,
    `components` and `partials` nested the same way.
    """
    if isinstance(data, (list, str)):
        data = {"template": data}
    if not isinstance(data, Mapping):
        raise TreeLoadError(f"Expected a component object, got {type(data).__name__}", path)
    if "type" in data:
        data = {"template": [data]}

    descriptor: Dict[str, Any] = {}
    for key, value in data.items():
        where = f"{path}.{key}" if path else key
        if key == "template":
            descriptor["template"] = _template_factory(load_tree(value, where))
        elif key == "data":
            if not isinstance(value, Mapping):
                raise TreeLoadError("data must be an object", where)
            descriptor["data"] = _data_factory(value)
        elif key == "props":
            descriptor["props"] = _load_props(value, where)
        elif key == "components":
            descriptor["components"] = {
                name: load_component(item, f"{where}.{name}") for name, item in value.items()
            }
        elif key == "partials":
            descriptor["partials"] = {
                name: _template_factory(load_tree(item, f"{where}.{name}")) for name, item in value.items()
            }
        elif key in ("name", "replace", "inherit"):
            descriptor[key] = value
        else:
            raise TreeLoadError(f'Unsupported component key "{key}"', where)
    return descriptor


def _template_factory(nodes: List[ElementNode]):
    def template() -> List[ElementNode]:
        return copy.deepcopy(nodes)

    return template


def _data_factory(values: Mapping):
    def data(vm: Any) -> Dict[str, Any]:
        return copy.deepcopy(dict(values))

    return data


def _load_props(value: Any, path: str) -> Any:
    if isinstance(value, list):
        return list(value)
    if not isinstance(value, Mapping):
        raise TreeLoadError("props must be a list or an object", path)

    props: Dict[str, Any] = {}
    for name, config in value.items():
        if config is None or isinstance(config, str):
            props[name] = _prop_type(config, f"{path}.{name}")
            continue
        if not isinstance(config, Mapping):
            raise TreeLoadError("prop must be a type name or an object", f"{path}.{name}")
        props[name] = {
            "type": _prop_type(config.get("type"), f"{path}.{name}.type"),
            "default": config.get("default"),
            "required": bool(config.get("required", False)),
        }
    return props


def _prop_type(name: Any, path: str) -> Any:
    if name is None:
        return None
    try:
        return PROP_TYPES[name]
    except KeyError:
        raise TreeLoadError(f'Unknown prop type "{name}"', path) from None


def load_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a component descriptor from a JSON file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise TreeLoadError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise TreeLoadError(f"Invalid JSON in {path}: {e.msg} (line {e.lineno})") from e
    return load_component(data)
