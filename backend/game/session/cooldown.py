"""Debounce for guess submissions."""

import time
from collections.abc import Callable


class SubmissionCooldown:
    """Single-token bucket: one submission per interval.

    The token refills continuously at 1/interval per second and never exceeds
    one, so two accepted submissions are always at least ``interval`` apart.
    """

    def __init__(self, interval_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._interval = interval_seconds
        self._clock = clock
        self._tokens = 1.0
        self._last_refill = clock()

    def try_acquire(self) -> bool:
        """Consume the token if available. Returns False while cooling down."""
        if self._interval <= 0:
            return True
        now = self._clock()
        self._tokens = min(1.0, self._tokens + (now - self._last_refill) / self._interval)
        self._last_refill = now

        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False

    def reset(self) -> None:
        self._tokens = 1.0
        self._last_refill = self._clock()
