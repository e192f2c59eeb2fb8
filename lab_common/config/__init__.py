"""Configuration helpers for lab_common."""

from .env import (
    collect_env_overrides,
    parse_bool_env,
    parse_float_env,
    parse_str_env,
)

__all__ = [
    "collect_env_overrides",
    "parse_bool_env",
    "parse_float_env",
    "parse_str_env",
]
