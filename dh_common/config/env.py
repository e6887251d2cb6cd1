"""Environment variable parsing utilities."""

from __future__ import annotations

_TRUE_VALUES = frozenset({"1", "t", "true", "yes", "y", "on"})
_FALSE_VALUES = frozenset({"0", "f", "false", "no", "n", "off"})


def parse_bool_env(value: str | None) -> bool | None:
    """Parse a boolean from an environment variable string.

    Returns True for "1", "true", "yes", "on" (case-insensitive).
    Returns None if value is None.
    """
    if value is None:
        return None
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_bool_strict(value: str) -> bool:
    """Parse a textual boolean, raising ValueError for anything unrecognised."""
    token = value.strip().lower()
    if token in _TRUE_VALUES:
        return True
    if token in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value: {value!r}")

