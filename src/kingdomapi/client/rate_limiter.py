"""Client-side sliding-window rate limiter.

Every endpoint key gets an ordered deque of the timestamps of its accepted
calls. A check first prunes timestamps that have left the trailing window,
then accepts (and records) the call only if fewer than ``max_requests``
remain.

This is a sliding-window *log* used for self-throttling, not a token bucket.
It bounds accepted calls in any window that ends at a check; calls bunched
on either side of a window boundary can still briefly approach twice the
nominal rate when measured over an arbitrary window.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Callable, Optional

from kingdomapi.exceptions import RateLimitExceeded
from kingdomapi.models import RateLimitConfig


class SlidingWindowRateLimiter:
    """Per-key sliding-window counter.

    Args:
        config: ``max_requests`` per ``window_seconds``; ``enabled=False``
            accepts everything.
        clock: Returns the current time in seconds.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or RateLimitConfig()
        self._clock = clock
        self._windows: dict[str, deque[float]] = {}

    @property
    def max_requests(self) -> int:
        return self._config.max_requests

    @property
    def window_seconds(self) -> float:
        return self._config.window_seconds

    def allow(self, key: str) -> bool:
        """Record and accept a call for *key*, or reject it without recording."""
        if not self._config.enabled:
            return True
        now = self._clock()
        window = self._prune(key, now)
        if len(window) >= self._config.max_requests:
            return False
        window.append(now)
        return True

    def check(self, key: str) -> None:
        """Like :meth:`allow`, but raise :class:`RateLimitExceeded` on rejection."""
        if not self.allow(key):
            raise RateLimitExceeded(key, retry_after=self.retry_after(key))

    def remaining(self, key: str) -> int:
        """Number of calls *key* may still make in the current window."""
        window = self._prune(key, self._clock())
        return max(self._config.max_requests - len(window), 0)

    def retry_after(self, key: str) -> float:
        """Seconds until *key* may be accepted again (``0.0`` if it may be now)."""
        now = self._clock()
        window = self._prune(key, now)
        if len(window) < self._config.max_requests:
            return 0.0
        return max(window[0] + self._config.window_seconds - now, 0.0)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget the history of *key*, or of every key."""
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)

    def _prune(self, key: str, now: float) -> deque[float]:
        window = self._windows.setdefault(key, deque())
        horizon = now - self._config.window_seconds
        while window and window[0] <= horizon:
            window.popleft()
        return window
