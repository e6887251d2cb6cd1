"""Process-wide mapping from driver name to factory and options model."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Mapping, Type, TypeVar

from pydantic import ValidationError

from dh_common.errors import ConfigurationError, UnknownDriverError
from dh_hosts.drivers import BaseDriverOptions, Driver

O = TypeVar("O", bound=BaseDriverOptions)


@dataclass(frozen=True)
class RegisteredDriver(Generic[O]):
    """Factory plus the typed options model used to build creation flags."""

    factory: Callable[[Path], Driver[O, Any]]
    options_model: Type[O]

    def build_options(self, flags: Mapping[str, Any] | None = None) -> O:
        """Validate a raw flag mapping into the driver's options model.

        ``None`` values are dropped so model defaults apply.
        """
        raw = {key: val for key, val in (flags or {}).items() if val is not None}
        try:
            return self.options_model.model_validate(raw)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid options for {self.options_model.__name__}: {exc}",
                cause=exc,
            ) from exc


class DriverRegistry:
    """Name -> RegisteredDriver map, filled by explicit registration calls."""

    def __init__(self) -> None:
        self._drivers: Dict[str, RegisteredDriver[Any]] = {}
        self._lock = threading.Lock()

    def register(self, name: str, registered: RegisteredDriver[Any]) -> None:
        with self._lock:
            if name in self._drivers:
                raise ValueError(f"Driver {name!r} is already registered")
            self._drivers[name] = registered

    def get(self, name: str) -> RegisteredDriver[Any]:
        with self._lock:
            registered = self._drivers.get(name)
        if registered is None:
            raise UnknownDriverError(
                f"hosts: Unknown driver {name!r}", context={"driver": name}
            )
        return registered

    def new_driver(self, name: str, store_path: Path) -> Driver[Any, Any]:
        """Construct an unprovisioned driver for ``store_path``."""
        return self.get(name).factory(store_path)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._drivers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._drivers


_default_registry = DriverRegistry()


def default_registry() -> DriverRegistry:
    """Return the process-wide registry."""
    return _default_registry


def register(name: str, registered: RegisteredDriver[Any]) -> None:
    """Register a driver on the process-wide registry."""
    _default_registry.register(name, registered)
