"""Stop token for cancelling blocking polling loops."""

from __future__ import annotations

import signal
import time
from typing import Callable, Dict, Optional


class StopToken:
    """
    Lightweight cooperative stop controller.

    It can be tripped explicitly, by an optional deadline (seconds from
    construction, measured on ``clock``) or by SIGINT/SIGTERM when
    ``enable_signals`` is set. Polling loops call `should_stop()` between
    attempts and abort when True.
    """

    def __init__(
        self,
        deadline: Optional[float] = None,
        enable_signals: bool = False,
        on_stop: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._expires_at = clock() + deadline if deadline is not None else None
        self._on_stop = on_stop
        self._stop_requested = False
        self.reason: str | None = None
        self._prev_handlers: Dict[int, Callable] = {}
        if enable_signals:
            self._install_signal_handlers()

    def _install_signal_handlers(self) -> None:
        """Capture SIGINT/SIGTERM and mark the token as stopped."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._prev_handlers[sig] = signal.getsignal(sig)
                signal.signal(sig, self._handle_signal)  # type: ignore[arg-type]
            except ValueError:
                # Not on the main thread; run without signal support.
                continue

    def _handle_signal(self, signum: int, frame) -> None:  # type: ignore[override]
        self.request_stop(f"signal {signum}")

    def request_stop(self, reason: str = "stop requested") -> None:
        """Mark the token as stopped and trigger callback once."""
        if self._stop_requested:
            return
        self._stop_requested = True
        self.reason = reason
        if self._on_stop:
            self._on_stop()

    def should_stop(self) -> bool:
        """Return True when stop was requested or the deadline has passed."""
        if self._stop_requested:
            return True
        if self._expires_at is not None and self._clock() >= self._expires_at:
            self.request_stop("deadline exceeded")
            return True
        return False

    def restore(self) -> None:
        """Restore original signal handlers."""
        for sig, handler in self._prev_handlers.items():
            signal.signal(sig, handler)  # type: ignore[arg-type]
        self._prev_handlers.clear()

    def __enter__(self) -> "StopToken":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.restore()
