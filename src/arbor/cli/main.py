"""Main CLI entry point."""

import importlib
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

import rich_click as click
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from arbor import __version__
from arbor.compiler.exceptions import ArborError
from arbor.compiler.loader import load_file
from arbor.core.element import ElementNode
from arbor.core.instance import Instance
from arbor.runtime.config import RendererConfig
from arbor.runtime.logging import configure_logging
from arbor.runtime.renderer import Renderer

console = Console()

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_HELPTEXT_FIRST = True
click.rich_click.STYLE_COMMANDS_TABLE_SHOW_LINES = False
click.rich_click.STYLE_COMMANDS_TABLE_PAD_EDGE = False
click.rich_click.STYLE_COMMANDS_TABLE_BOX = None
click.rich_click.STYLE_COMMANDS_TABLE_HEADER = "bold magenta"
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running 'arbor --help' for more information."
click.rich_click.STYLE_OPTIONS_TABLE_BOX = None
click.rich_click.STYLE_COMMANDS_PANEL_BOX = None
click.rich_click.STYLE_OPTIONS_PANEL_BOX = None

click.rich_click.STYLE_HEADER_TEXT = "bold green"
click.rich_click.STYLE_OPTION = "green"
click.rich_click.STYLE_SWITCH = "green"
click.rich_click.STYLE_METAVAR = "dim white"
click.rich_click.STYLE_USAGE_COMMAND = "green"
click.rich_click.STYLE_USAGE = "dim"

click.rich_click.COMMAND_GROUPS = {
    "arbor": [
        {
            "name": "Commands",
            "commands": ["build", "inspect"],
        }
    ]
}


def import_component(source: str) -> Any:
    """Import a component from string (e.g. 'app.components:App')."""
    module_name, attr = source.split(":", 1)

    # Local modules are importable like in the project root
    sys.path.insert(0, os.getcwd())

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"Could not import module '{module_name}': {e}", param_hint="SOURCE")

    try:
        return getattr(module, attr)
    except AttributeError:
        raise click.BadParameter(
            f"Attribute '{attr}' not found in module '{module_name}'",
            param_hint="SOURCE",
        )


def load_source(source: str) -> Any:
    """A JSON file path, or 'module:attr' naming a component."""
    if Path(source).is_file():
        return load_file(source)
    if ":" in source:
        return import_component(source)
    raise click.BadParameter(
        "SOURCE must be a JSON file or 'module:component'", param_hint="SOURCE"
    )


def describe_instance(vm: Instance) -> str:
    state = vm.state
    if state.is_component:
        label = f"[bold green]{escape(vm.options.name or 'anonymous')}[/]"
    elif state.not_public:
        label = "[cyan]for-item[/]"
    elif state.is_repeat:
        label = "[cyan]repeat-item[/]"
    else:
        label = "[bold]root[/]"

    keys = sorted(k for k in vm.data if not k.startswith(("$", "_")))
    if keys:
        label += f" [dim]{escape(', '.join(keys))}[/]"
    if not vm.is_ready:
        label += " [red](not ready)[/]"
    return label


def instance_tree(vm: Instance, tree: Optional[Tree] = None) -> Tree:
    node = Tree(describe_instance(vm)) if tree is None else tree.add(describe_instance(vm))
    for child in vm.state.children:
        if child is not None:
            instance_tree(child, node)
    return node


def describe_element(el: ElementNode) -> str:
    if el.type == "text":
        return f'[dim]"{escape((el.text or "").strip())}"[/]'
    if el.type == "document":
        return "[bold]#document[/]"

    label = f"[bold]{escape(el.name or el.type)}[/]"
    attribs = " ".join(f"{k}={v!r}" for k, v in el.attribs.items() if v is not None)
    if attribs:
        label += f" {escape(attribs)}"
    if el.is_key_element:
        label += " [magenta]◆[/]"
    component = el.dirs.get("component")
    if component and component.status == "unresolved":
        label += f" [red](unresolved {escape(str(component.value))})[/]"
    return label


def element_tree(el: ElementNode, tree: Optional[Tree] = None) -> Tree:
    node = Tree(describe_element(el)) if tree is None else tree.add(describe_element(el))
    for child in el.inner:
        if child.type == "text" and not (child.text or "").strip():
            continue
        element_tree(child, node)
    return node


def _render(
    source: str,
    strict: Optional[bool],
    replace: Optional[bool],
    timeout: Optional[float],
    log_level: Optional[str],
) -> Instance:
    level = None
    if log_level:
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            raise click.BadParameter(f"Unknown log level '{log_level}'", param_hint="--log-level")

    config = RendererConfig.from_env(strict=strict, replace=replace, build_timeout=timeout, log_level=level)
    configure_logging(config.log_level, console=console)

    try:
        component = load_source(source)
        return Renderer(config).render_sync(component)
    except ArborError as e:
        raise click.ClickException(str(e))


def render_options(fn: Any) -> Any:
    fn = click.option("--log-level", default=None, help="Logging level (default: ARBOR_LOG_LEVEL or warning)")(fn)
    fn = click.option("--timeout", default=None, type=float, help="Seconds to wait for the tree")(fn)
    fn = click.option("--replace/--no-replace", default=None, help="Templates replace their host element")(fn)
    fn = click.option("--strict/--no-strict", default=None, help="Do not inherit ancestor registries")(fn)
    fn = click.argument("source")(fn)
    return fn


@click.group(
    help=f"""
[bold white on green] arbor [/] [bold green]v{__version__}[/] Build component trees on the server.

Run [bold green]arbor build SOURCE[/] to build a tree and show its instances.
Run [bold green]arbor inspect SOURCE[/] to show the expanded element tree.

[dim]SOURCE is a JSON component file or 'module:component'.[/dim]
"""
)
@click.version_option(__version__)
def cli() -> None:
    pass


@cli.command()
@render_options
def build(source: str, strict: Optional[bool], replace: Optional[bool], timeout: Optional[float], log_level: Optional[str]) -> None:
    """Build a tree and print its instances."""
    console.print(f"🌳 Building [green]{escape(source)}[/]...")
    root = _render(source, strict, replace, timeout, log_level)

    console.print(instance_tree(root))
    count = sum(1 for _ in _iter_instances(root))
    console.print(f"✅ Tree ready (instances={count})")


@cli.command()
@render_options
def inspect(source: str, strict: Optional[bool], replace: Optional[bool], timeout: Optional[float], log_level: Optional[str]) -> None:
    """Build a tree and print the expanded element tree."""
    root = _render(source, strict, replace, timeout, log_level)
    console.print(element_tree(root.el))


def _iter_instances(vm: Instance):
    yield vm
    for child in vm.state.children:
        if child is not None:
            yield from _iter_instances(child)


if __name__ == "__main__":
    cli()
