from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ragruntime.core.errors import ConfigurationError
from ragruntime.domain.models.batch import RateLimiterState

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Absorbs float drift so a wait of exactly one token interval is enough.
_EPSILON = 1e-9


class RateLimiter:
    """Token bucket shared by every worker that calls one provider.

    The bucket holds ``requests_per_minute`` tokens, starts full and refills
    continuously at ``requests_per_minute / 60`` tokens per second.
    """

    def __init__(
        self,
        requests_per_minute: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.reconfigure(requests_per_minute)

    @property
    def requests_per_minute(self) -> float:
        return self._capacity

    @property
    def state(self) -> RateLimiterState:
        return RateLimiterState(tokens=self._tokens, last_refill=self._last_refill)

    def reconfigure(self, requests_per_minute: float) -> None:
        if requests_per_minute <= 0:
            raise ConfigurationError("rate limit must be a positive number of requests per minute")
        self._capacity = float(requests_per_minute)
        self._rate = self._capacity / 60.0
        self._tokens = self._capacity
        self._last_refill = self._clock()

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1 - _EPSILON:
                    self._tokens = max(0.0, self._tokens - 1)
                    return
                wait = (1 - self._tokens) / self._rate
                logger.debug("Rate limit reached; waiting %.3fs for a token", wait)
                await self._sleep(wait)

    async def execute(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        await self.acquire()
        return await fn(*args, **kwargs)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_refill = now
