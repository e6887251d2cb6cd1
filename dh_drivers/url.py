"""Driver for an already running daemon reachable at a fixed URL."""

from __future__ import annotations

import logging
import socket
from pathlib import Path
from urllib.parse import urlparse

from pydantic import field_validator

from dh_common.errors import ConfigurationError, DriverNotSupportedError
from dh_hosts.drivers import BaseDriverOptions, BaseDriverState, Driver
from dh_hosts.ssh import RemoteCommand
from dh_hosts.state import State

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("tcp", "unix", "fd")
DEFAULT_TCP_PORT = 2375


def _check_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in SUPPORTED_SCHEMES:
        raise ValueError(
            f"unsupported URL {value!r}: scheme must be one of {', '.join(SUPPORTED_SCHEMES)}"
        )
    if parsed.scheme == "tcp":
        if not parsed.hostname:
            raise ValueError(f"invalid URL {value!r}: tcp URLs need a host")
        try:
            port = parsed.port
        except ValueError as exc:
            raise ValueError(f"invalid URL {value!r}: {exc}") from exc
        if port == 0:
            raise ValueError(f"invalid URL {value!r}: port 0 is not connectable")
    return value


class UrlDriverOptions(BaseDriverOptions):
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _check_url(value)


class UrlDriverState(BaseDriverState):
    url: str = ""


class UrlDriver(Driver[UrlDriverOptions, UrlDriverState]):
    """Handle to an existing endpoint; lifecycle actions are not available."""

    state_cls = UrlDriverState

    def __init__(self, store_path: Path, probe_timeout: float = 2.0) -> None:
        super().__init__(store_path)
        self.probe_timeout = probe_timeout

    def driver_name(self) -> str:
        return "url"

    def set_config_from_flags(self, options: UrlDriverOptions) -> None:
        try:
            self.config.url = _check_url(options.url)
        except ValueError as exc:
            raise ConfigurationError(str(exc), cause=exc) from exc

    def get_url(self) -> str:
        return self.config.url

    def get_ip(self) -> str:
        return urlparse(self.config.url).hostname or ""

    def get_state(self) -> State:
        parsed = urlparse(self.config.url)
        if parsed.scheme == "unix":
            return State.RUNNING if Path(parsed.path).exists() else State.ERROR
        if parsed.scheme != "tcp" or not parsed.hostname:
            return State.NONE
        try:
            port = parsed.port or DEFAULT_TCP_PORT
            with socket.create_connection(
                (parsed.hostname, port), timeout=self.probe_timeout
            ):
                return State.RUNNING
        except (OSError, ValueError) as exc:
            logger.debug("Probe of %s failed: %s", self.config.url, exc)
            return State.ERROR

    def create(self) -> None:
        if not self.config.url:
            raise ConfigurationError("url driver requires a URL")

    def start(self) -> None:
        raise DriverNotSupportedError("url hosts cannot be started")

    def stop(self) -> None:
        raise DriverNotSupportedError("url hosts cannot be stopped")

    def restart(self) -> None:
        raise DriverNotSupportedError("url hosts cannot be restarted")

    def kill(self) -> None:
        raise DriverNotSupportedError("url hosts cannot be killed")

    def remove(self) -> None:
        # Nothing remote is owned; the store deletes the local directory.
        return None

    def get_ssh_command(self, *args: str) -> RemoteCommand:
        raise DriverNotSupportedError("url hosts do not support SSH")
