"""Host store, driver contract and registry for docker-hosts."""

from dh_common.api import configure_logging as _configure_logging

_configure_logging()

from dh_hosts.api import (  # noqa: F401,E402
    DEFAULT_HOST_NAME,
    Driver,
    DriverRegistry,
    Host,
    RegisteredDriver,
    State,
    Store,
    default_registry,
)

__all__ = [
    "DEFAULT_HOST_NAME",
    "Driver",
    "DriverRegistry",
    "Host",
    "RegisteredDriver",
    "State",
    "Store",
    "default_registry",
]
