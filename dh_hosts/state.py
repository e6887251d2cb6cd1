"""Canonical host lifecycle states."""

from __future__ import annotations

from enum import Enum
from typing import Mapping


class State(str, Enum):
    """State of a host as last reported by its backing environment."""

    NONE = ""
    STARTING = "Starting"
    RUNNING = "Running"
    PAUSED = "Paused"
    SAVED = "Saved"
    STOPPED = "Stopped"
    ERROR = "Error"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_provider_status(
        cls, status: str | None, mapping: Mapping[str, "State"]
    ) -> tuple["State", str | None]:
        """Map a raw provider status into a State.

        Returns the state and a diagnostic message, which is only set when
        the status was not recognised (and the state is ERROR).
        """
        key = (status or "").strip().lower()
        state = mapping.get(key)
        if state is None:
            return cls.ERROR, f"unrecognized provider status {status!r}"
        return state, None
