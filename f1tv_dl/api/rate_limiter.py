"""
Paces calls to the F1TV API and slows down when the server answers 429.
"""

import asyncio
import logging
import time

log = logging.getLogger(__name__)


class AdaptiveRateLimiter:
    """
    Keeps a minimum interval between API calls.

    Each 429 halves the allowed rate (never below ``min_calls_per_second``) and,
    if the server sent ``Retry-After``, blocks all callers until it has passed.
    After ``recovery_window`` seconds without a 429 the rate creeps back up.
    """

    def __init__(
        self,
        calls_per_second: float = 2.0,
        min_calls_per_second: float = 0.2,
        recovery_window: float = 300.0,
    ):
        self._max_rate = calls_per_second
        self._min_rate = min_calls_per_second
        self._rate = calls_per_second
        self._recovery_window = recovery_window
        self._last_call = 0.0
        self._last_429 = 0.0
        self._blocked_until = 0.0
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    async def on_429(self, retry_after: float | None = None) -> None:
        async with self._lock:
            self._rate = max(self._min_rate, self._rate * 0.5)
            now = time.monotonic()
            self._last_429 = now
            if retry_after:
                self._blocked_until = max(self._blocked_until, now + retry_after)
            log.warning(
                f"[yellow]Rate limit hit. New rate: {self._rate:.2f} calls/s[/yellow]"
            )

    async def acquire(self) -> None:
        """Waits until the next call is allowed."""
        async with self._lock:
            now = time.monotonic()
            if self._last_429 and now - self._last_429 > self._recovery_window:
                self._rate = min(self._max_rate, self._rate * 1.05)

            wait = max(
                self._blocked_until - now,
                self._last_call + 1.0 / self._rate - now,
            )
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_call = time.monotonic()
