"""Built-in drivers and their registration."""

from __future__ import annotations

from typing import Optional

from dh_drivers.default import DefaultDriver, DefaultDriverOptions
from dh_drivers.ec2 import Ec2Driver, Ec2DriverOptions
from dh_drivers.url import UrlDriver, UrlDriverOptions
from dh_hosts.registry import DriverRegistry, RegisteredDriver, default_registry

BUILTIN_DRIVERS = {
    "default": RegisteredDriver(factory=DefaultDriver, options_model=DefaultDriverOptions),
    "url": RegisteredDriver(factory=UrlDriver, options_model=UrlDriverOptions),
    "ec2": RegisteredDriver(factory=Ec2Driver, options_model=Ec2DriverOptions),
}


def register_builtin_drivers(registry: Optional[DriverRegistry] = None) -> DriverRegistry:
    """Register the built-in drivers; call once at process start."""
    target = registry or default_registry()
    for name, registered in BUILTIN_DRIVERS.items():
        if name not in target:
            target.register(name, registered)
    return target


__all__ = ["BUILTIN_DRIVERS", "register_builtin_drivers"]
