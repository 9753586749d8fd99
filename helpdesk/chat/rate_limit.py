"""Per-session fixed-window admission control.

Best effort only: windows live in process memory and are lost on restart.
The limiter is owned by whoever builds the orchestrator and injected into
it, so a shared-cache implementation can replace it without touching callers.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from helpdesk.config import settings

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    """Admitted calls in the current window and when the window resets."""

    count: int
    reset_at: float


class RateLimiter:
    """Caps how many messages a session may send per window.

    All mutation happens on the event loop thread between awaits, so no lock
    is needed. Expired windows are dropped by :meth:`sweep`, which runs from
    housekeeping and whenever the map grows past *max_windows*.
    """

    def __init__(
        self,
        max_calls: int | None = None,
        window_seconds: float | None = None,
        max_windows: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_calls = max_calls or settings.rate_limit_max_messages
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self.max_windows = max_windows or settings.rate_limit_max_windows
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}

    def admit(self, session_id: str) -> bool:
        """Record one call for *session_id*. Returns False once the cap is hit."""
        now = self._clock()
        window = self._windows.get(session_id)

        if window is None or now > window.reset_at:
            if window is None and len(self._windows) >= self.max_windows:
                self.sweep()
            self._windows[session_id] = RateWindow(count=1, reset_at=now + self.window_seconds)
            return True

        if window.count >= self.max_calls:
            logger.info("Rate limited session %s (%d in window)", session_id, window.count)
            return False

        window.count += 1
        return True

    def sweep(self) -> int:
        """Drop expired windows. Returns how many were removed."""
        now = self._clock()
        expired = [sid for sid, w in self._windows.items() if now > w.reset_at]
        for sid in expired:
            del self._windows[sid]
        if expired:
            logger.debug("Swept %d expired rate windows", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)
