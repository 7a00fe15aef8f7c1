"""
Global request rate limiter shared by all crawler workers.
"""

import asyncio
import logging
import time
from typing import Optional


class RateLimiter:
    """
    Enforces a minimum interval between consecutive requests across all workers.

    The limiter holds its lock while sleeping, so waiting workers are released
    one at a time, each at least `interval_ms` after the previous one.
    """

    def __init__(self, interval_ms: int = 0):
        if interval_ms < 0:
            raise ValueError("interval_ms must be non-negative")
        self.interval_ms = interval_ms
        self.interval = interval_ms / 1000.0
        self.logger = logging.getLogger(__name__)

        self._lock = asyncio.Lock()
        self._last_grant: Optional[float] = None
        self.total_wait_time = 0.0

        if self.enabled:
            self.logger.info(f"Rate limiting to one request every {interval_ms}ms")

    @property
    def enabled(self) -> bool:
        return self.interval_ms > 0

    async def acquire(self):
        """Wait until the next request is permitted to start."""
        if not self.enabled:
            return

        async with self._lock:
            if self._last_grant is not None:
                remaining = self._last_grant + self.interval - time.monotonic()
                while remaining > 0:
                    self.total_wait_time += remaining
                    await asyncio.sleep(remaining)
                    remaining = self._last_grant + self.interval - time.monotonic()
            self._last_grant = time.monotonic()

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False
