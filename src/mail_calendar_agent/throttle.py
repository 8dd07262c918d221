"""Fixed-interval pacing between successive provider API calls."""

from __future__ import annotations

import time
from typing import Callable


class Throttle:
    """Blocks until ``interval`` seconds have passed since the previous call.

    The first ``wait()`` never sleeps. An interval of 0 disables pacing,
    which is what tests use.

    Args:
        interval: Minimum spacing between calls, in seconds.
        sleep: Sleep function, injectable for tests.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        interval: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval < 0:
            raise ValueError("Throttle interval must be non-negative")
        self.interval = interval
        self._sleep = sleep
        self._clock = clock
        self._last: float | None = None

    def wait(self) -> float:
        """Pace the caller. Returns the number of seconds slept."""
        slept = 0.0
        if self.interval and self._last is not None:
            remaining = self.interval - (self._clock() - self._last)
            if remaining > 0:
                self._sleep(remaining)
                slept = remaining
        self._last = self._clock()
        return slept

    def reset(self) -> None:
        self._last = None
