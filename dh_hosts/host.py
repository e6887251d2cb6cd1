"""Host entity and on-disk descriptor persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dh_common.errors import HostNotFoundError, StoreError
from dh_hosts.drivers import Driver
from dh_hosts.registry import DriverRegistry
from dh_hosts.ssh import RemoteCommand
from dh_hosts.state import State

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"


@dataclass
class Host:
    """A named handle to one machine, backed by a driver and a local directory."""

    name: str
    driver_name: str
    path: Path
    driver: Driver[Any, Any]

    @property
    def config_path(self) -> Path:
        return self.path / CONFIG_FILE_NAME

    def create(self) -> None:
        logger.info("Creating host %s with driver %s", self.name, self.driver_name)
        self.driver.create()

    def start(self) -> None:
        self.driver.start()

    def stop(self) -> None:
        self.driver.stop()

    def restart(self) -> None:
        self.driver.restart()

    def kill(self) -> None:
        self.driver.kill()

    def remove(self) -> None:
        self.driver.remove()

    def get_url(self) -> str:
        return self.driver.get_url()

    def get_ip(self) -> str:
        return self.driver.get_ip()

    def get_state(self) -> State:
        return self.driver.get_state()

    def get_ssh_command(self, *args: str) -> RemoteCommand:
        return self.driver.get_ssh_command(*args)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "driver_name": self.driver_name,
            "driver": self.driver.to_state(),
        }

    def save_config(self) -> None:
        """Write the descriptor; the previous file is replaced atomically."""
        payload = json.dumps(self.to_dict(), indent=2, sort_keys=True)
        tmp_path = self.config_path.with_suffix(".json.tmp")
        try:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, self.config_path)
        except OSError as exc:
            raise StoreError(
                f"Error saving host {self.name!r}: {exc}",
                context={"path": self.config_path},
                cause=exc,
            ) from exc


def new_host(
    name: str, driver_name: str, path: Path, registry: DriverRegistry
) -> Host:
    """Build an unprovisioned host with a fresh driver."""
    driver = registry.new_driver(driver_name, path)
    return Host(name=name, driver_name=driver_name, path=path, driver=driver)


def load_host(name: str, path: Path, registry: DriverRegistry) -> Host:
    """Rebuild a host from its descriptor under ``path``."""
    config_path = path / CONFIG_FILE_NAME
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise HostNotFoundError(
            f"Host {name!r} does not exist", context={"path": path}, cause=exc
        ) from exc
    except OSError as exc:
        raise StoreError(
            f"Error reading host {name!r}: {exc}", context={"path": path}, cause=exc
        ) from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StoreError(
            f"Error decoding host {name!r}: {exc}",
            context={"path": config_path},
            cause=exc,
        ) from exc
    if not isinstance(data, dict) or "driver_name" not in data:
        raise StoreError(
            f"Host descriptor for {name!r} is missing 'driver_name'",
            context={"path": config_path},
        )
    host = new_host(name, data["driver_name"], path, registry)
    host.driver.load_state(data.get("driver") or {})
    return host
