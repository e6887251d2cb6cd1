"""Directory-backed host store with active-host tracking.

Layout under the store root::

    <root>/.active            name of the active host (raw text)
    <root>/<name>/config.json host descriptor
    <root>/<name>/*.pem       key material written by drivers

The active pointer is a plain file without locking: concurrent writers from
independent processes are not synchronised and the last writer wins.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path
from typing import List, Optional

from dh_common.errors import (
    HostCreateError,
    HostExistsError,
    StoreError,
)
from dh_hosts.drivers import BaseDriverOptions
from dh_hosts.host import Host, load_host, new_host
from dh_hosts.registry import DriverRegistry, default_registry

logger = logging.getLogger(__name__)

DEFAULT_HOST_NAME = "default"
ACTIVE_FILE_NAME = ".active"
ROOT_ENV_VAR = "DOCKER_HOSTS_ROOT"

_VALID_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def default_root() -> Path:
    """Store root from $DOCKER_HOSTS_ROOT, else ~/.docker/hosts."""
    env_root = os.environ.get(ROOT_ENV_VAR)
    if env_root:
        return Path(env_root).expanduser()
    return Path.home() / ".docker" / "hosts"


class Store:
    """Persist hosts on the filesystem."""

    def __init__(
        self,
        path: Optional[Path] = None,
        registry: Optional[DriverRegistry] = None,
    ) -> None:
        self.path = Path(path) if path is not None else default_root()
        self.registry = registry or default_registry()

    def create(
        self,
        name: str,
        driver_name: str,
        options: Optional[BaseDriverOptions] = None,
    ) -> Host:
        """Create, provision and persist a new host.

        Raises HostExistsError before touching disk or the remote side when
        the name is taken. Failures after the host directory exists raise
        HostCreateError carrying the partially built host; nothing is
        cleaned up automatically.
        """
        self._validate_name(name)
        if self.exists(name):
            raise HostExistsError(f"Host {name!r} already exists", context={"host": name})

        host_path = self.path / name
        host = new_host(name, driver_name, host_path, self.registry)
        if options is not None:
            host.driver.set_config_from_flags(options)

        self._make_host_dir(name, host_path)

        try:
            host.create()
        except Exception as exc:
            self._save_partial(host)
            raise HostCreateError(
                f"Error creating host {name!r}: {exc}", host=host, cause=exc
            ) from exc

        try:
            host.save_config()
        except StoreError as exc:
            raise HostCreateError(
                f"Error saving host {name!r}: {exc}", host=host, cause=exc
            ) from exc
        logger.info("Host %s created", name)
        return host

    def remove(self, name: str) -> None:
        """Deprovision a host and delete its local directory."""
        if name == DEFAULT_HOST_NAME:
            raise StoreError("The default host cannot be removed", context={"host": name})
        if self._read_active_name() == name:
            self.remove_active()

        host = self.load(name)
        host.remove()
        try:
            shutil.rmtree(host.path)
        except OSError as exc:
            raise StoreError(
                f"Error deleting directory of host {name!r}: {exc}",
                context={"path": host.path},
                cause=exc,
            ) from exc
        logger.info("Host %s removed", name)

    def list(self) -> List[Host]:
        """Return the default host followed by every stored host."""
        hosts = [self.load(DEFAULT_HOST_NAME)]
        try:
            entries = sorted(self.path.iterdir())
        except FileNotFoundError:
            return hosts
        except OSError as exc:
            raise StoreError(
                f"Error listing hosts in {self.path}: {exc}",
                context={"path": self.path},
                cause=exc,
            ) from exc

        for entry in entries:
            if not entry.is_dir() or entry.name == DEFAULT_HOST_NAME:
                continue
            try:
                hosts.append(self.load(entry.name))
            except Exception as exc:
                logger.error("error loading host %r: %s", entry.name, exc)
        return hosts

    def exists(self, name: str) -> bool:
        if name == DEFAULT_HOST_NAME:
            return True
        return (self.path / name).exists()

    def load(self, name: str) -> Host:
        host_path = self.path / name
        if name == DEFAULT_HOST_NAME:
            return new_host(name, DEFAULT_HOST_NAME, host_path, self.registry)
        return load_host(name, host_path, self.registry)

    def save(self, host: Host) -> None:
        """Re-persist a host whose driver fields changed."""
        host.save_config()

    def get_active(self) -> Host:
        name = self._read_active_name()
        if name is None:
            return self.load(DEFAULT_HOST_NAME)
        return self.load(name)

    def is_active(self, host: Host) -> bool:
        return self.get_active().name == host.name

    def set_active(self, host: Host) -> None:
        try:
            self.path.mkdir(parents=True, exist_ok=True, mode=0o700)
            self._active_path().write_text(host.name, encoding="utf-8")
            self._active_path().chmod(0o600)
        except OSError as exc:
            raise StoreError(
                f"Error setting active host: {exc}",
                context={"path": self._active_path()},
                cause=exc,
            ) from exc

    def remove_active(self) -> None:
        self._active_path().unlink(missing_ok=True)

    def _active_path(self) -> Path:
        """Path of the file storing the name of the active host."""
        return self.path / ACTIVE_FILE_NAME

    def _read_active_name(self) -> Optional[str]:
        try:
            name = self._active_path().read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreError(
                f"Error reading active host: {exc}",
                context={"path": self._active_path()},
                cause=exc,
            ) from exc
        return name or None

    def _make_host_dir(self, name: str, host_path: Path) -> None:
        # Exclusive mkdir: a concurrent creator of the same name loses here.
        try:
            self.path.mkdir(parents=True, exist_ok=True, mode=0o700)
            host_path.mkdir(mode=0o700)
        except FileExistsError as exc:
            raise HostExistsError(
                f"Host {name!r} already exists", context={"host": name}, cause=exc
            ) from exc
        except OSError as exc:
            raise StoreError(
                f"Error creating directory for host {name!r}: {exc}",
                context={"path": host_path},
                cause=exc,
            ) from exc

    @staticmethod
    def _save_partial(host: Host) -> None:
        try:
            host.save_config()
        except StoreError as exc:
            logger.warning("Could not persist partial state of %s: %s", host.name, exc)

    @staticmethod
    def _validate_name(name: str) -> None:
        if not _VALID_NAME.match(name or ""):
            raise StoreError(
                f"Invalid host name {name!r}: use letters, digits, '.', '_' or '-'",
                context={"host": name},
            )
