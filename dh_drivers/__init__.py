"""Host drivers for docker-hosts (local socket, URL endpoint, AWS EC2)."""

from dh_drivers.api import BUILTIN_DRIVERS, register_builtin_drivers

__all__ = ["BUILTIN_DRIVERS", "register_builtin_drivers"]
