"""Layered lookup of host connection settings.

The hierarchy flows like this, most preferred first:

    environment variable => persisted setting => hardcoded default
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from dh_common.config.env import parse_bool_strict
from dh_common.errors import ConfigurationError

DEFAULT_UNIX_SOCKET = "/var/run/docker.sock"
DEFAULT_HOST = f"unix://{DEFAULT_UNIX_SOCKET}"


@dataclass(frozen=True)
class ConfigHierarchy:
    """Where to look for one setting."""

    env_var: str
    json_key: str
    default: Any


def _lookup(hierarchy: ConfigHierarchy, settings: Mapping[str, Any] | None) -> Any:
    env_val = os.environ.get(hierarchy.env_var, "")
    if env_val:
        return env_val
    if settings is not None and settings.get(hierarchy.json_key) is not None:
        return settings[hierarchy.json_key]
    return hierarchy.default


def resolve_str(
    hierarchy: ConfigHierarchy, settings: Mapping[str, Any] | None = None
) -> str:
    """Resolve a string setting."""
    value = _lookup(hierarchy, settings)
    if not isinstance(value, str):
        raise ConfigurationError(
            f"Unrecognized type for {hierarchy.json_key} / {hierarchy.env_var}: "
            f"expected a string, got {type(value).__name__}",
            context={"key": hierarchy.json_key, "env_var": hierarchy.env_var},
        )
    return value


def resolve_bool(
    hierarchy: ConfigHierarchy, settings: Mapping[str, Any] | None = None
) -> bool:
    """Resolve a boolean that may arrive natively or as text."""
    value = _lookup(hierarchy, settings)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return parse_bool_strict(value)
        except ValueError as exc:
            raise ConfigurationError(
                f"Error parsing {hierarchy.json_key} / {hierarchy.env_var} value: {exc}",
                context={"key": hierarchy.json_key, "env_var": hierarchy.env_var},
                cause=exc,
            ) from exc
    raise ConfigurationError(
        f"Unrecognized type for {hierarchy.json_key} value in config file: "
        f"{type(value).__name__}",
        context={"key": hierarchy.json_key, "env_var": hierarchy.env_var},
    )


@dataclass
class HostConfig:
    """Persisted host connection settings (``Host``, ``TlsVerify``, ``CertPath``)."""

    settings: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "HostConfig":
        """Read the ``host`` object of a JSON settings file.

        A missing file is an empty config.
        """
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigurationError(
                f"Error reading {path}: {exc}", context={"path": path}, cause=exc
            ) from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                f"Error decoding {path}: {exc}", context={"path": path}, cause=exc
            ) from exc
        host_section = data.get("host") if isinstance(data, dict) else None
        if host_section is None:
            return cls()
        if not isinstance(host_section, dict):
            raise ConfigurationError(
                f"'host' section of {path} must be an object",
                context={"path": path},
            )
        return cls(settings=dict(host_section))

    def get_host(self) -> str:
        return resolve_str(
            ConfigHierarchy(env_var="DOCKER_HOST", json_key="Host", default=DEFAULT_HOST),
            self.settings,
        )

    def get_tls_verify(self) -> bool:
        return resolve_bool(
            ConfigHierarchy(
                env_var="DOCKER_TLS_VERIFY", json_key="TlsVerify", default="false"
            ),
            self.settings,
        )

    def get_cert_path(self) -> str:
        return resolve_str(
            ConfigHierarchy(
                env_var="DOCKER_CERT_PATH",
                json_key="CertPath",
                default=str(Path.home() / ".docker"),
            ),
            self.settings,
        )
