"""Remote shell seam used to bootstrap and inspect hosts over SSH (Fabric)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from fabric import Connection
from invoke.exceptions import UnexpectedExit

from dh_common.errors import RemoteCommandError

logger = logging.getLogger(__name__)


class RemoteCommand(Protocol):
    """An executable remote command handle."""

    def run(self) -> str:
        """Run the command; return stdout or raise RemoteCommandError."""
        ...


class RemoteShell(Protocol):
    """Factory of remote command handles for one target."""

    def command(
        self, address: str, port: int, user: str, key_path: Path, command: str
    ) -> RemoteCommand:
        ...


@dataclass
class FabricCommand:
    """Run one shell command on a host via direct SSH (Fabric)."""

    address: str
    port: int
    user: str
    key_path: Path
    command: str
    connect_timeout: float = 10.0

    def _get_connection(self) -> Connection:
        return Connection(
            host=self.address,
            user=self.user,
            port=self.port,
            connect_timeout=self.connect_timeout,
            connect_kwargs={
                "key_filename": str(Path(self.key_path).expanduser()),
                "banner_timeout": 30,
            },
        )

    def run(self) -> str:
        conn = self._get_connection()
        logger.debug("Running over SSH on %s: %s", self.address, self.command)
        try:
            result = conn.run(self.command, hide=True, warn=False)
            return result.stdout
        except UnexpectedExit as exc:
            raise RemoteCommandError(
                f"Command exited with {exc.result.exited} on {self.address}: "
                f"{(exc.result.stderr or '').strip()}",
                context={"address": self.address, "command": self.command},
                cause=exc,
            ) from exc
        except Exception as exc:
            raise RemoteCommandError(
                f"SSH to {self.address}:{self.port} failed: {exc}",
                context={"address": self.address, "command": self.command},
                cause=exc,
            ) from exc
        finally:
            conn.close()


class FabricShell:
    """RemoteShell backed by Fabric connections."""

    def __init__(self, connect_timeout: float = 10.0) -> None:
        self.connect_timeout = connect_timeout

    def command(
        self, address: str, port: int, user: str, key_path: Path, command: str
    ) -> FabricCommand:
        return FabricCommand(
            address=address,
            port=port,
            user=user,
            key_path=key_path,
            command=command,
            connect_timeout=self.connect_timeout,
        )
