"""
Process-wide pacing for completion API calls.

Every call waits for a minimum interval since the previous one; a
rate-limit response opens a cooldown window during which callers either
wait it out or fail fast.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from app.features.event_discovery.domain.errors import Cooldown
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RateGate:
    def __init__(
        self,
        min_interval_seconds: float,
        cooldown_seconds: float,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.min_interval = min_interval_seconds
        self.cooldown_seconds = cooldown_seconds
        self.last_call_at: float | None = None
        self.cooldown_until = 0.0
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

    def cooldown_remaining(self) -> float:
        return max(0.0, self.cooldown_until - self._clock())

    def in_cooldown(self) -> bool:
        return self.cooldown_remaining() > 0

    async def _wait_out_cooldown(self, fast_fail: bool) -> None:
        while True:
            remaining = self.cooldown_remaining()
            if remaining <= 0:
                return
            if fast_fail:
                raise Cooldown("Completion API cooling down", retry_after=remaining)
            logger.info("Waiting out completion cooldown", seconds=round(remaining, 1))
            await self._sleep(remaining)

    async def acquire(self, fast_fail: bool = False, respect_cooldown: bool = True) -> None:
        """
        Wait until a call may be issued and claim the slot.

        The cooldown is waited out before queueing, so a fast-fail caller is
        never stuck behind a caller that is sleeping through it. Only the
        min_interval slot is taken under the lock.

        Raises:
            Cooldown: in cooldown and fast_fail was requested
        """
        while True:
            if respect_cooldown:
                await self._wait_out_cooldown(fast_fail)

            async with self._lock:
                # A rate limit may have reopened the cooldown while queued
                if respect_cooldown and self.in_cooldown():
                    continue

                if self.last_call_at is not None:
                    wait = self.last_call_at + self.min_interval - self._clock()
                    if wait > 0:
                        await self._sleep(wait)

                self.last_call_at = self._clock()
                return

    def trip_cooldown(self) -> None:
        self.cooldown_until = self._clock() + self.cooldown_seconds
        logger.warning("Completion API rate limited, cooldown started", seconds=self.cooldown_seconds)
