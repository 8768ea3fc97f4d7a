"""Random pause between consecutive operations of a bulk request.

Toggling a setting on every admin group in one go looks like automation to
the messaging service, so ``GroupService`` spaces the calls out by a random
2-5 second gap.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from wabridge.infrastructure.config.settings import (
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MIN_DELAY_MS,
    BulkDelaySettings,
)

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class BulkDelay:
    """Sleeps for a uniformly random number of milliseconds in [min_ms, max_ms]."""

    def __init__(
        self,
        min_ms: int = DEFAULT_MIN_DELAY_MS,
        max_ms: int = DEFAULT_MAX_DELAY_MS,
        sleep: Sleeper = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """Initializes the delay policy.

        Args:
            min_ms: Shortest pause in milliseconds.
            max_ms: Longest pause in milliseconds (inclusive).
            sleep: Coroutine used to wait; tests inject a recorder.
            rng: Random source; defaults to a private ``random.Random``.
        """
        if min_ms < 0 or max_ms < min_ms:
            raise ValueError(f"Invalid delay range: {min_ms}..{max_ms} ms")
        self.min_ms = min_ms
        self.max_ms = max_ms
        self._sleep = sleep
        self._rng = rng or random.Random()
        logger.info(f"BulkDelay initialized: {min_ms}-{max_ms} ms between bulk operations")

    @classmethod
    def from_settings(cls, settings: BulkDelaySettings, **kwargs) -> "BulkDelay":
        return cls(min_ms=settings.min_ms, max_ms=settings.max_ms, **kwargs)

    def next_delay_ms(self) -> int:
        return self._rng.randint(self.min_ms, self.max_ms)

    async def wait(self) -> float:
        """Sleeps for one random interval and returns it in seconds."""
        delay_s = self.next_delay_ms() / 1000
        logger.debug(f"Pausing {delay_s:.2f}s before the next bulk operation.")
        await self._sleep(delay_s)
        return delay_s
