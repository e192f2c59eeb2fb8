"""Environment variable parsing utilities."""

from __future__ import annotations

import os
from typing import Any, Callable


def parse_bool_env(value: str | None) -> bool | None:
    """Parse a boolean from an environment variable string.

    Returns True for "1", "true", "yes", "on" (case-insensitive).
    Returns None if value is None.
    """
    if value is None:
        return None
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_float_env(value: str | None) -> float | None:
    """Parse a float from an environment variable string."""
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_str_env(value: str | None) -> str | None:
    """Return a stripped string, or None for unset/blank values."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def collect_env_overrides(
    mapping: dict[str, tuple[str, Callable[[str | None], Any]]],
    environ: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Read ``{field: (ENV_NAME, parser)}`` and return the parsed, set values.

    Example: ``{"vagrant_path": ("LAB_VAGRANT_PATH", parse_str_env)}``.
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for field_name, (env_name, parser) in mapping.items():
        parsed = parser(env.get(env_name))
        if parsed is not None:
            overrides[field_name] = parsed
    return overrides
