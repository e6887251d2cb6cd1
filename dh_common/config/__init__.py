"""Configuration helpers for dh_common."""

from .env import parse_bool_env, parse_bool_strict
from .hierarchy import (
    DEFAULT_HOST,
    DEFAULT_UNIX_SOCKET,
    ConfigHierarchy,
    HostConfig,
    resolve_bool,
    resolve_str,
)

__all__ = [
    "ConfigHierarchy",
    "DEFAULT_HOST",
    "DEFAULT_UNIX_SOCKET",
    "HostConfig",
    "parse_bool_env",
    "parse_bool_strict",
    "resolve_bool",
    "resolve_str",
]
