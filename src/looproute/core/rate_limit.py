"""
Client-side quota for Google Maps calls.

One random-loop search makes up to ~4 calls per refine iteration, so a handful of
concurrent requests can burn through a per-minute quota quickly. `build_rate_limiter`
creates one shared bucket per process when `providers.google.rate_limit.max_per_minute`
is set.
"""

from __future__ import annotations

import threading
import time

from looproute.core.deadline import Deadline


class TokenBucketRateLimiter:
    """Token bucket refilled at `max_per_minute / 60` tokens per second (thread-safe)."""

    def __init__(self, max_per_minute: float, burst: float | None = None):
        if max_per_minute <= 0:
            raise ValueError("max_per_minute must be > 0")
        self.capacity = float(burst if burst is not None else max_per_minute)
        self.rate_per_s = float(max_per_minute) / 60.0
        self._tokens = self.capacity
        self._stamp = time.monotonic()
        self._lock = threading.Lock()

    def _wait_for(self, need: float) -> float:
        """Take `need` tokens and return 0, or return how long until they exist."""
        with self._lock:
            now = time.monotonic()
            self._tokens = min(self.capacity, self._tokens + (now - self._stamp) * self.rate_per_s)
            self._stamp = now
            if self._tokens >= need:
                self._tokens -= need
                return 0.0
            return (need - self._tokens) / self.rate_per_s

    def acquire(self, tokens: float = 1.0, *, deadline: Deadline | None = None) -> None:
        """Block until `tokens` are available.

        Raises:
            SearchTimeout: If `deadline` runs out while waiting.
        """
        deadline = deadline or Deadline.unbounded()
        while True:
            deadline.check()
            wait = self._wait_for(tokens)
            if wait <= 0:
                return
            left = deadline.remaining()
            time.sleep(wait if left is None else min(wait, max(left, 0.001)))
