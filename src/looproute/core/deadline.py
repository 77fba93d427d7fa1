"""
Per-request deadline.

A `Deadline` is created once per loop request and handed to every snapper, oracle and
enhancer call. Calls check it before going out and cap their HTTP timeout to the
remaining budget, so a caller-side timeout cancels the whole search instead of
being tracked with ad hoc flags.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from looproute.errors import SearchTimeout


@dataclass
class Deadline:
    """A monotonic-clock budget (seconds). `None` means unbounded."""

    seconds: float | None = None
    _started: float = field(default_factory=time.monotonic, repr=False)

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(seconds=None)

    def remaining(self) -> float | None:
        if self.seconds is None:
            return None
        return max(0.0, self.seconds - (time.monotonic() - self._started))

    def expired(self) -> bool:
        left = self.remaining()
        return left is not None and left <= 0

    def check(self) -> None:
        """Raise `SearchTimeout` once the budget is spent."""
        if self.expired():
            raise SearchTimeout(f"Loop generation exceeded {self.seconds:.0f}s budget.")

    def cap_timeout(self, timeout_seconds: float) -> float:
        """Clamp a per-call timeout to what is left of the budget."""
        self.check()
        left = self.remaining()
        if left is None:
            return float(timeout_seconds)
        return max(0.001, min(float(timeout_seconds), left))
