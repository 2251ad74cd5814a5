"""Fixed-interval pacing for requests to the exchange and the model API.

Both the disclosure site and the classifier penalize bursts, so the
pipeline spaces out downloads and announcements. Pacing lives here rather
than as sleeps inside business logic; sleep and clock are injectable so
tests can assert on waits without spending wall-clock time.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], float]


class Pacer:
    """Guarantee a minimum interval between consecutive operations.

    The first wait() returns immediately. Each later call sleeps only for
    the part of the interval that has not already elapsed since the
    previous call returned.

    Example:
        >>> pacer = Pacer(2.0)
        >>> for url in urls:
        ...     await pacer.wait()
        ...     await fetch(url)
    """

    def __init__(
        self,
        interval: float,
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = time.monotonic,
        name: str = "pacer",
    ):
        self.interval = max(0.0, interval)
        self._sleep = sleep
        self._clock = clock
        self._name = name
        self._last: float | None = None

    async def wait(self) -> float:
        """Wait for the next slot.

        Returns:
            Seconds slept (0.0 if no wait was needed)
        """
        slept = 0.0
        if self._last is not None and self.interval > 0:
            remaining = self.interval - (self._clock() - self._last)
            if remaining > 0:
                logger.debug("Pacing | pacer=%s wait=%.2fs", self._name, remaining)
                await self._sleep(remaining)
                slept = remaining
        self._last = self._clock()
        return slept

    def reset(self) -> None:
        """Forget the previous slot so the next wait() is immediate."""
        self._last = None
