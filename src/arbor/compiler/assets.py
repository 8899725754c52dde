"""Asset registries: lookup with name-casing fallback and registry merging."""

import re
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from arbor.core.instance import Instance

ASSET_KINDS = ("components", "partials", "filters")

# Tags that never become components implicitly, even if a component matches
NATIVE_TAG_RE = re.compile(
    r"^(div|p|span|img|a|b|i|br|ul|ol|li|h1|h2|h3|h4|h5|h6|code|pre|table|th|td|tr|"
    r"form|label|input|select|option|nav|article|section|header|footer)$"
)

_DASH_RE = re.compile(r"-+([a-zA-Z0-9])")
_UPPER_RE = re.compile(r"([a-z0-9])([A-Z])")


def dash_to_camel(name: str) -> str:
    return _DASH_RE.sub(lambda m: m.group(1).upper(), name)


def dash_to_pascal(name: str) -> str:
    camel = dash_to_camel(name)
    return camel[:1].upper() + camel[1:]


def camel_to_dash(name: str) -> str:
    return _UPPER_RE.sub(r"\1-\2", name).lower()


def is_native_tag(name: str) -> bool:
    return bool(NATIVE_TAG_RE.match(name.lower()))


def lookup(registry: Mapping[str, Any], name: Optional[str]) -> Tuple[Optional[str], Any]:
    """Find `name` verbatim, then camelCased, then PascalCased.

    Returns the registry key that matched and its entry, or (None, None).
    """
    if not name:
        return None, None
    for candidate in (name, dash_to_camel(name), dash_to_pascal(name)):
        if candidate in registry and registry[candidate] is not None:
            return candidate, registry[candidate]
    return None, None


def get_asset(vm: "Instance", kind: str) -> Dict[str, Any]:
    """Registry of the nearest public instance (light instances borrow it)."""
    while vm.state.not_public and vm.parent is not None:
        vm = vm.parent
    return getattr(vm.options, kind)


def merge_registries(
    strict: bool,
    global_registry: Mapping[str, Any],
    inherited: Optional[Mapping[str, Any]],
    own: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """Strict mode: global + own. Inheriting mode: global + ancestor + own."""
    merged: Dict[str, Any] = dict(global_registry)
    if not strict and inherited:
        merged.update(inherited)
    if own:
        merged.update(own)
    return merged


def resolve_partial(vm: "Instance", name: Optional[str]) -> Any:
    """Return the partial template function for `name`, or None (logged)."""
    _, partial = lookup(get_asset(vm, "partials"), name)
    if partial is not None:
        return partial

    logger = vm.state.logger
    if logger:
        message = f'There is no partial "{name or ""}"'
        if name:
            logger.warn(message, vm)
        else:
            logger.debug(message, vm)
    return None
