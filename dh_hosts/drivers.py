"""Capability contract every host driver implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Generic, Type, TypeVar

from pydantic import BaseModel, ValidationError

from dh_common.errors import StoreError
from dh_hosts.ssh import RemoteCommand
from dh_hosts.state import State


class BaseDriverOptions(BaseModel):
    """Base model for typed, per-driver creation options."""

    model_config = {
        "extra": "forbid",
    }


class BaseDriverState(BaseModel):
    """Base model for the persisted field set of a driver."""

    model_config = {
        "extra": "ignore",
        "validate_assignment": True,
    }


O = TypeVar("O", bound=BaseDriverOptions)
S = TypeVar("S", bound=BaseDriverState)


class Driver(ABC, Generic[O, S]):
    """
    Provisioning and lifecycle operations for one target environment.

    Only `create`, `start`, `stop`, `restart`, `kill` and `remove` may mutate
    remote state. `get_state`, `get_url` and `get_ip` are read-only but may
    query the remote side. Constructing a driver never provisions anything.
    """

    #: Pydantic model holding the persisted fields.
    state_cls: Type[S]

    def __init__(self, store_path: Path) -> None:
        self.store_path = Path(store_path)
        self.config: S = self.state_cls()

    @abstractmethod
    def driver_name(self) -> str:
        """Registry name of the driver (e.g. 'ec2')."""

    @abstractmethod
    def set_config_from_flags(self, options: O) -> None:
        """Apply creation options; validate them before any remote call."""

    @abstractmethod
    def get_url(self) -> str:
        pass

    @abstractmethod
    def get_ip(self) -> str:
        pass

    @abstractmethod
    def get_state(self) -> State:
        pass

    @abstractmethod
    def create(self) -> None:
        """Provision the backing remote resource. Not idempotent."""

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def restart(self) -> None:
        pass

    @abstractmethod
    def kill(self) -> None:
        pass

    @abstractmethod
    def remove(self) -> None:
        """Deprovision the backing remote resource."""

    @abstractmethod
    def get_ssh_command(self, *args: str) -> RemoteCommand:
        pass

    def to_state(self) -> Dict[str, Any]:
        """Return the driver's full persisted field set."""
        return self.config.model_dump(mode="json")

    def load_state(self, data: Dict[str, Any]) -> None:
        """Restore fields previously produced by `to_state`."""
        try:
            self.config = self.state_cls.model_validate(data)
        except ValidationError as exc:
            raise StoreError(
                f"Invalid persisted state for driver {self.driver_name()}: {exc}",
                context={"path": self.store_path},
                cause=exc,
            ) from exc
