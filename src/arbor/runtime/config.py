"""Renderer configuration."""

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class RendererConfig:
    """Options recognized by the renderer.

    strict: an instance's asset registries replace its ancestors' instead
        of being merged over them.
    replace: a component's template replaces its host element by default;
        a component's own `replace` option wins.
    build_timeout: seconds `Renderer.render` waits for the tree to become
        ready (None waits forever).
    """

    strict: bool = False
    replace: bool = True
    build_timeout: Optional[float] = None
    log_level: int = logging.WARNING

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "RendererConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise ValueError(f"Unknown config option(s): {', '.join(sorted(unknown))}")
        return cls(**dict(mapping))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "RendererConfig":
        """Read ARBOR_* variables; explicit overrides win."""
        env = os.environ if environ is None else environ
        values: dict = {}

        if "ARBOR_STRICT" in env:
            values["strict"] = _parse_bool(env["ARBOR_STRICT"])
        if "ARBOR_REPLACE" in env:
            values["replace"] = _parse_bool(env["ARBOR_REPLACE"])
        if env.get("ARBOR_BUILD_TIMEOUT"):
            values["build_timeout"] = float(env["ARBOR_BUILD_TIMEOUT"])
        if env.get("ARBOR_LOG_LEVEL"):
            level = logging.getLevelName(env["ARBOR_LOG_LEVEL"].upper())
            if isinstance(level, int):
                values["log_level"] = level

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_mapping(values)
