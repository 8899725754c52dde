from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("arbor")
except PackageNotFoundError:
    __version__ = "unknown"

from arbor.compiler.exceptions import (
    ArborError,
    BuildTimeoutError,
    ComponentResolveError,
    FilterError,
    TreeLoadError,
)
from arbor.compiler.loader import load_component, load_tree
from arbor.core.element import (
    Directive,
    DirectiveValue,
    ElementNode,
    FilterCall,
    component_tag,
    directive,
    element,
    text,
)
from arbor.core.instance import Instance
from arbor.core.options import ComponentConstructor, ComponentOptions, component
from arbor.runtime.config import RendererConfig
from arbor.runtime.logging import BuildLogger, configure_logging
from arbor.runtime.renderer import Renderer

__all__ = [
    "ArborError",
    "BuildLogger",
    "BuildTimeoutError",
    "ComponentConstructor",
    "ComponentOptions",
    "ComponentResolveError",
    "Directive",
    "DirectiveValue",
    "ElementNode",
    "FilterCall",
    "FilterError",
    "Instance",
    "Renderer",
    "RendererConfig",
    "TreeLoadError",
    "component",
    "component_tag",
    "configure_logging",
    "directive",
    "element",
    "load_component",
    "load_tree",
    "text",
]
