from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterator

from loguru import logger

from prompt_enhancer.core.models import RateLimitConfig, RateLimitDecision, RateLimitStatus

"""
Client-side sliding window rate limiting.

Each named budget keeps the timestamps of its recent requests and drops the
ones that fell out of the window lazily, on the next read or write. There are
no background timers, so time can be driven by a fake clock in tests.
"""

WAIT_BUFFER_MS = 100


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


class RateLimiter:
    """
    Sliding window limiter: at most ``max_requests`` calls per rolling ``window_ms``.

    Args:
        name (str): Identifier of the budget (used in logs and by the registry)
        config (RateLimitConfig | None): Budget limits (defaults to 60 requests per minute)
        clock (Callable[[], float] | None): Returns the current time in milliseconds
        sleep (Callable[[float], Awaitable[None]] | None): Async sleep taking seconds

    Example:
        >>> limiter = RateLimiter("test", RateLimitConfig(max_requests=3, window_ms=60_000))
        >>> limiter.record_request().allowed
        True
    """

    def __init__(
        self,
        name: str,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.name = name
        self.config = config or RateLimitConfig()
        self._clock = clock or _wall_clock_ms
        self._sleep = sleep or asyncio.sleep
        self._timestamps: deque[float] = deque()

    def _purge(self, now: float) -> None:
        window_start = now - self.config.window_ms
        while self._timestamps and self._timestamps[0] <= window_start:
            self._timestamps.popleft()

    def _reset_in(self, now: float) -> int:
        if not self._timestamps:
            return 0
        return max(0, math.ceil(self._timestamps[0] + self.config.window_ms - now))

    def can_make_request(self) -> bool:
        """Return True if a request recorded now would be allowed."""
        self._purge(self._clock())
        return len(self._timestamps) < self.config.max_requests

    def record_request(self) -> RateLimitDecision:
        """
        Try to consume one slot of the budget.

        Returns:
            RateLimitDecision: ``allowed=False`` with ``wait_time_ms`` until the oldest
            request leaves the window, or ``allowed=True`` with the remaining slots.
        """
        now = self._clock()
        self._purge(now)

        if len(self._timestamps) >= self.config.max_requests:
            wait_time = self._reset_in(now) if self._timestamps else self.config.window_ms
            logger.debug(
                f"Rate limit exceeded for {self.name}. Wait {math.ceil(wait_time / 1000)}s"
            )
            return RateLimitDecision(allowed=False, wait_time_ms=wait_time, reset_in_ms=wait_time)

        self._timestamps.append(now)
        remaining = self.config.max_requests - len(self._timestamps)
        logger.debug(
            f"Request recorded for {self.name}. Remaining: {remaining}/{self.config.max_requests}"
        )
        return RateLimitDecision(allowed=True, remaining=remaining, reset_in_ms=self._reset_in(now))

    async def wait_for_availability(self) -> None:
        """
        Suspend until a request can be made.

        Sleeps until the oldest request leaves the window (plus a small buffer)
        instead of polling.

        Raises:
            ValueError: If the budget allows no requests at all
        """
        if self.config.max_requests <= 0:
            raise ValueError(f"Rate limiter {self.name} allows no requests (max_requests=0)")

        while not self.can_make_request():
            wait_time = self._reset_in(self._clock())
            logger.debug(f"Waiting {math.ceil(wait_time / 1000)}s before next request")
            await self._sleep((wait_time + WAIT_BUFFER_MS) / 1000.0)

    def get_status(self) -> RateLimitStatus:
        now = self._clock()
        self._purge(now)
        used = len(self._timestamps)
        return RateLimitStatus(
            used=used,
            remaining=max(0, self.config.max_requests - used),
            limit=self.config.max_requests,
            reset_in_ms=self._reset_in(now),
        )

    def reset(self) -> None:
        self._timestamps.clear()
        logger.debug(f"Rate limiter reset for {self.name}")

    def update_config(
        self, max_requests: int | None = None, window_ms: int | None = None
    ) -> None:
        """
        Merge new limits into the current configuration.

        Already recorded timestamps are kept; they are judged against the new
        window on the next purge.
        """
        self.config = RateLimitConfig(
            max_requests=self.config.max_requests if max_requests is None else max_requests,
            window_ms=self.config.window_ms if window_ms is None else window_ms,
        )
        logger.debug(
            f"Rate limit config updated for {self.name}: "
            f"{self.config.max_requests} req/{self.config.window_ms}ms"
        )


# Budgets matching the OpenAI tiers (requests per minute)
DEFAULT_BUDGETS: dict[str, RateLimitConfig] = {
    "openai-standard": RateLimitConfig(max_requests=60, window_ms=60_000),
    "openai-conservative": RateLimitConfig(max_requests=30, window_ms=60_000),
    "openai-free": RateLimitConfig(max_requests=20, window_ms=60_000),
    "testing": RateLimitConfig(max_requests=5, window_ms=60_000),
}


class RateLimiterRegistry:
    """
    Named rate limit budgets shared by every caller that holds the registry.

    Build one at process start and pass it (or the limiters it hands out)
    to the code that makes requests.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock
        self._limiters: dict[str, RateLimiter] = {}

    @classmethod
    def with_defaults(cls, clock: Callable[[], float] | None = None) -> RateLimiterRegistry:
        registry = cls(clock=clock)
        for name, config in DEFAULT_BUDGETS.items():
            registry.register(name, RateLimitConfig(config.max_requests, config.window_ms))
        return registry

    def register(self, name: str, config: RateLimitConfig) -> RateLimiter:
        key = name.lower()
        if key in self._limiters:
            raise ValueError(f"Rate limiter already registered: {name}")
        limiter = RateLimiter(key, config, clock=self._clock)
        self._limiters[key] = limiter
        return limiter

    def get(self, name: str) -> RateLimiter:
        key = name.lower()
        if key not in self._limiters:
            raise KeyError(f"Unknown rate limiter: {name}")
        return self._limiters[key]

    def get_or_create(self, name: str, config: RateLimitConfig | None = None) -> RateLimiter:
        key = name.lower()
        if key in self._limiters:
            return self._limiters[key]
        return self.register(key, config or RateLimitConfig())

    def reset_all(self) -> None:
        for limiter in self._limiters.values():
            limiter.reset()

    def names(self) -> list[str]:
        return list(self._limiters)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._limiters

    def __iter__(self) -> Iterator[RateLimiter]:
        return iter(self._limiters.values())
