"""Driver for the implicit ``default`` host: the local daemon socket."""

from __future__ import annotations

from dh_common.config import HostConfig
from dh_common.errors import DriverNotSupportedError
from dh_hosts.drivers import BaseDriverOptions, BaseDriverState, Driver
from dh_hosts.ssh import RemoteCommand
from dh_hosts.state import State

SETTINGS_FILE_NAME = "settings.json"


class DefaultDriverOptions(BaseDriverOptions):
    """The default host takes no creation options."""


class DefaultDriverState(BaseDriverState):
    url: str = ""


class DefaultDriver(Driver[DefaultDriverOptions, DefaultDriverState]):
    """Points at DOCKER_HOST, the persisted ``Host`` setting or the local socket.

    Settings are read from ``settings.json`` at the store root.
    """

    state_cls = DefaultDriverState

    def driver_name(self) -> str:
        return "default"

    def set_config_from_flags(self, options: DefaultDriverOptions) -> None:
        return None

    def get_url(self) -> str:
        if self.config.url:
            return self.config.url
        return HostConfig.load(self.store_path.parent / SETTINGS_FILE_NAME).get_host()

    def get_ip(self) -> str:
        return ""

    def get_state(self) -> State:
        return State.NONE

    def create(self) -> None:
        return None

    def start(self) -> None:
        raise DriverNotSupportedError("default host cannot be started")

    def stop(self) -> None:
        raise DriverNotSupportedError("default host cannot be stopped")

    def restart(self) -> None:
        raise DriverNotSupportedError("default host cannot be restarted")

    def kill(self) -> None:
        raise DriverNotSupportedError("default host cannot be killed")

    def remove(self) -> None:
        raise DriverNotSupportedError("default host cannot be removed")

    def get_ssh_command(self, *args: str) -> RemoteCommand:
        raise DriverNotSupportedError("default host does not support SSH")
