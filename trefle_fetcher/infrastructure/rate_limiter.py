"""
Infrastructure layer: cooperative delay between outbound requests.

Trefle allows 120 requests per minute. Requests are issued one at a time
with a random whole-second pause between them, which keeps a long fetch
comfortably under that limit.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from trefle_fetcher.config import settings

logger = logging.getLogger(__name__)


def random_number(min_val: int, max_val: int) -> int:
    """
    Generate a random integer between min_val and max_val (inclusive).

    Raises:
        ValueError: If min_val > max_val
    """
    if min_val > max_val:
        raise ValueError(f"min_val ({min_val}) cannot be greater than max_val ({max_val})")

    result = random.randint(min_val, max_val)
    logger.debug(f"Generated random number: {result} (range: {min_val}-{max_val})")
    return result


class RateLimiter:
    """
    Suspends the caller for a random whole number of seconds.

    Holds no request state, so one instance can be shared by every fetch loop.
    """

    def __init__(
        self,
        min_delay: Optional[int] = None,
        max_delay: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_delay = settings.rate_limit_min_delay if min_delay is None else min_delay
        self.max_delay = settings.rate_limit_max_delay if max_delay is None else max_delay

        if self.min_delay < 0:
            raise ValueError("Delay cannot be negative")
        if self.min_delay > self.max_delay:
            raise ValueError(
                f"min_delay ({self.min_delay}) cannot be greater than max_delay ({self.max_delay})"
            )

        self._sleep = sleep

    async def suspend(self) -> int:
        """Pause for a random delay in [min_delay, max_delay] and return it."""
        delay = random_number(self.min_delay, self.max_delay)
        logger.debug(f"Pausing for {delay} seconds...")
        await self._sleep(delay)
        return delay
