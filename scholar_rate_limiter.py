"""
Per-channel outbound rate limiting.

Each channel enforces a minimum interval between grants. Waiters on a
channel queue on an ``asyncio.Lock``, which wakes them in FIFO order, so
acquisitions are totally ordered per channel and no caller is starved.
The lock is held only while waiting for the interval, never across the
HTTP request itself.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

STANDARD = "standard"
BATCH = "batch"

# Minimum seconds between grants: 10 req/s standard, 1 req/s batch
DEFAULT_INTERVALS = {
    STANDARD: 0.1,
    BATCH: 1.0,
}


class RateLimiter:
    """Minimum-interval limiter with independent channels.

    Args:
        intervals: Channel name -> minimum seconds between grants
        clock: Monotonic time source
        sleep: Coroutine used to wait
    """

    def __init__(
        self,
        intervals: Optional[Dict[str, float]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._intervals = dict(DEFAULT_INTERVALS if intervals is None else intervals)
        self._clock = clock
        self._sleep = sleep
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_grant: Dict[str, float] = {}

    @property
    def channels(self):
        return tuple(self._intervals)

    def interval(self, channel: str) -> float:
        try:
            return self._intervals[channel]
        except KeyError:
            raise ValueError(f"Unknown rate limit channel: {channel!r}") from None

    async def acquire(self, channel: str = STANDARD) -> float:
        """Wait until the next request on ``channel`` may be sent.

        Returns:
            The clock reading at which the slot was granted
        """
        interval = self.interval(channel)
        lock = self._locks.setdefault(channel, asyncio.Lock())

        async with lock:
            last = self._last_grant.get(channel)
            if last is not None:
                while True:
                    wait = last + interval - self._clock()
                    if wait <= 0:
                        break
                    logger.debug("Rate limit: waiting %.3fs on %s channel", wait, channel)
                    await self._sleep(wait)
            granted = self._clock()
            self._last_grant[channel] = granted
            return granted
