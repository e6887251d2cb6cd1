"""Public host lifecycle API surface."""

from dh_hosts.drivers import BaseDriverOptions, BaseDriverState, Driver
from dh_hosts.host import Host, load_host, new_host
from dh_hosts.registry import (
    DriverRegistry,
    RegisteredDriver,
    default_registry,
    register,
)
from dh_hosts.ssh import FabricShell, RemoteCommand, RemoteShell
from dh_hosts.state import State
from dh_hosts.store import DEFAULT_HOST_NAME, Store, default_root

__all__ = [
    "BaseDriverOptions",
    "BaseDriverState",
    "DEFAULT_HOST_NAME",
    "Driver",
    "DriverRegistry",
    "FabricShell",
    "Host",
    "RegisteredDriver",
    "RemoteCommand",
    "RemoteShell",
    "State",
    "Store",
    "default_registry",
    "default_root",
    "load_host",
    "new_host",
    "register",
]
