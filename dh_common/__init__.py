"""Shared helpers for docker-hosts."""

from dh_common.api import (
    ConfigHierarchy,
    HostConfig,
    StopToken,
    configure_logging,
    resolve_bool,
    resolve_str,
)

__all__ = [
    "ConfigHierarchy",
    "HostConfig",
    "StopToken",
    "configure_logging",
    "resolve_bool",
    "resolve_str",
]
