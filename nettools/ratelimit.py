"""Client-side sliding-window rate limiter for command dispatch."""

import logging
import math
import time
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Admits at most ``capacity`` dispatches per trailing ``window_ms``.

    Denied dispatches are not queued; the caller decides whether to tell the
    user or retry later. This is a courtesy gate only and says nothing about
    the executor's own limits.
    """

    def __init__(
        self,
        capacity: int = 10,
        window_ms: int = 60_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            capacity: Maximum dispatches admitted within one window
            window_ms: Window length in milliseconds
            clock: Monotonic clock returning seconds
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        self.capacity = capacity
        self.window_ms = window_ms
        self._clock = clock
        self._window = deque()  # Dispatch timestamps in ms, oldest first

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _prune(self, now_ms: float):
        cutoff = now_ms - self.window_ms
        while self._window and self._window[0] <= cutoff:
            self._window.popleft()

    def admit(self) -> bool:
        """Record a dispatch and return True if the window has room."""
        now_ms = self._now_ms()
        self._prune(now_ms)

        if len(self._window) >= self.capacity:
            logger.debug(
                "Dispatch denied: %d/%d in window, next in %dms",
                len(self._window),
                self.capacity,
                self.next_available_in_ms(),
            )
            return False

        self._window.append(now_ms)
        return True

    def remaining(self) -> int:
        """Dispatches still available in the current window."""
        self._prune(self._now_ms())
        return self.capacity - len(self._window)

    def next_available_in_ms(self) -> int:
        """Milliseconds until the oldest dispatch leaves the window (0 if empty)."""
        now_ms = self._now_ms()
        self._prune(now_ms)

        if not self._window:
            return 0

        return max(0, math.ceil(self._window[0] + self.window_ms - now_ms))

    def reset(self):
        self._window.clear()
