"""Shared state for CLI commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rich.console import Console

from dh_hosts.store import Store


@dataclass
class UIContext:
    """Console plus a lazily built store, so `--root` can be applied first."""

    root: Optional[Path] = None
    console: Console = field(default_factory=Console)
    err_console: Console = field(default_factory=lambda: Console(stderr=True))
    _store: Optional[Store] = None

    @property
    def store(self) -> Store:
        if self._store is None:
            self._store = Store(path=self.root)
        return self._store

    def reset(self, root: Optional[Path] = None) -> None:
        self.root = root
        self._store = None
