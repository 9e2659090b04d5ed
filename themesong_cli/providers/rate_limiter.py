"""
Provides an adaptive rate limiter to stay polite with theme song websites.
"""

import asyncio
import logging
import time

log = logging.getLogger(__name__)


class AdaptiveRateLimiter:
    """
    Spaces out requests and backs off when a site answers 429.
    """

    def __init__(
        self, initial_calls_per_second: float = 2.0, max_calls_per_second: float = 4.0
    ):
        """
        Initializes the rate limiter.

        Args:
            initial_calls_per_second: The starting rate of calls per second.
            max_calls_per_second: The maximum rate to recover to.
        """
        self._rate = initial_calls_per_second
        self._max_rate = max_calls_per_second
        self._min_interval = 1.0 / self._rate
        self._last_call_time = 0.0
        self._last_429_time = 0.0
        self._lock = asyncio.Lock()

    async def on_429(self) -> None:
        """Halves the current request rate, down to one call every two seconds."""
        async with self._lock:
            self._rate = max(0.5, self._rate * 0.5)
            self._min_interval = 1.0 / self._rate
            self._last_429_time = time.monotonic()
            log.warning(
                f"[yellow]Rate limit hit. New rate: {self._rate:.1f} calls/s[/yellow]"
            )

    async def acquire(self) -> None:
        """Waits if necessary before allowing the next call to proceed."""
        async with self._lock:
            # Recover slowly once no 429 has been seen for a minute
            if time.monotonic() - self._last_429_time > 60:
                self._rate = min(self._max_rate, self._rate * 1.05)
                self._min_interval = 1.0 / self._rate

            now = time.monotonic()
            wait = self._min_interval - (now - self._last_call_time)
            if wait > 0:
                await asyncio.sleep(wait)

            self._last_call_time = time.monotonic()
