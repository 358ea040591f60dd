from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class RateLimiter:
    """Token bucket shared by all threads using one reader.

    ``qps`` tokens are added per second up to ``burst``; ``acquire`` blocks
    until a token is available. A ``qps`` of None disables throttling.
    """

    def __init__(
        self,
        qps: Optional[float],
        burst: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if qps is not None and qps <= 0:
            raise ValueError("qps must be > 0")
        if burst < 1:
            raise ValueError("burst must be >= 1")
        self.qps = qps
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def acquire(self) -> float:
        """Take one token; returns the time spent waiting."""
        if self.qps is None:
            return 0.0

        with self._lock:
            now = self._clock()
            self._tokens = min(float(self.burst), self._tokens + (now - self._last) * self.qps)
            self._last = now
            self._tokens -= 1.0
            # Negative balance: this caller owns a slot in the future.
            wait = -self._tokens / self.qps if self._tokens < 0 else 0.0

        if wait > 0:
            self._sleep(wait)
        return wait
