"""Public API surface for dh_common."""

from dh_common.config import ConfigHierarchy, HostConfig, resolve_bool, resolve_str
from dh_common.logging import configure_logging
from dh_common.stop_token import StopToken

__all__ = [
    "ConfigHierarchy",
    "HostConfig",
    "StopToken",
    "configure_logging",
    "resolve_bool",
    "resolve_str",
]
