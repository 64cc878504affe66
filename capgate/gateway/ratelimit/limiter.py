"""Sliding-window rate limiting per caller identity.

Each caller owns a ``deque`` of admission timestamps. On every admission check
the timestamps that fell out of the trailing window are popped from the left,
so a check costs amortized O(1). Callers that stop sending requests leave an
empty window behind; ``sweep`` removes those so the caller map cannot grow
without bound.

Denial is a normal outcome: ``admit`` returns ``False`` and never raises.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from ..policy.models import RateLimitPolicy

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Admission control with a trailing time window.

    Attributes:
        max_requests: Admissions allowed per caller within the window.
        window: Window length in seconds.
    """

    def __init__(
        self,
        policy: Optional[RateLimitPolicy] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        policy = policy or RateLimitPolicy()
        self.max_requests = policy.max_requests
        self.window = policy.window_seconds
        self._clock = clock
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()

    def _prune(self, window: Deque[float], now: float) -> None:
        cutoff = now - self.window
        while window and window[0] <= cutoff:
            window.popleft()

    async def admit(self, caller: str) -> bool:
        """Record and admit a request from ``caller`` if the window has room.

        Returns:
            True if admitted, False if the caller exhausted its window.
        """
        async with self._lock:
            now = self._clock()
            window = self._windows.get(caller)
            if window is None:
                window = self._windows[caller] = deque()
            self._prune(window, now)
            if len(window) >= self.max_requests:
                return False
            window.append(now)
            return True

    async def remaining(self, caller: str) -> int:
        """Number of admissions ``caller`` has left in the current window."""
        async with self._lock:
            window = self._windows.get(caller)
            if not window:
                return self.max_requests
            cutoff = self._clock() - self.window
            used = sum(1 for ts in window if ts > cutoff)
            return max(0, self.max_requests - used)

    async def retry_after(self, caller: str) -> float:
        """Seconds until the oldest admission of ``caller`` leaves the window."""
        async with self._lock:
            window = self._windows.get(caller)
            if not window or len(window) < self.max_requests:
                return 0.0
            return max(0.0, window[0] + self.window - self._clock())

    async def sweep(self) -> int:
        """Drop callers with no admissions inside the window.

        Returns:
            The number of callers removed.
        """
        async with self._lock:
            now = self._clock()
            idle = []
            for caller, window in self._windows.items():
                self._prune(window, now)
                if not window:
                    idle.append(caller)
            for caller in idle:
                del self._windows[caller]
        if idle:
            logger.debug(f"Rate limiter sweep removed {len(idle)} idle callers")
        return len(idle)

    def callers(self) -> int:
        """Number of callers currently tracked."""
        return len(self._windows)

    async def reset(self) -> None:
        async with self._lock:
            self._windows.clear()
