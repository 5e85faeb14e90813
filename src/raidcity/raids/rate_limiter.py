"""Sliding-window rate limiting for raid endpoints.

``InMemoryRateLimiter`` is correct for a single API process. Deployments
with several instances use ``RedisRateLimiter`` so every instance shares
the same window per key.
"""

from __future__ import annotations

import time
import uuid
from collections import deque
from collections.abc import Callable
from typing import Any, Protocol

from raidcity.config import Settings, get_settings
from raidcity.redis_client import get_redis


class RateLimiter(Protocol):
    """Answers whether one more request for ``key`` fits in the window."""

    limit: int
    window_seconds: float

    async def check(self, key: str) -> bool: ...


class InMemoryRateLimiter:
    """Per-key deque of request timestamps.

    ``check`` never awaits, so it is atomic on the event loop.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    async def check(self, key: str) -> bool:
        now = self._clock()
        cutoff = now - self.window_seconds
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(cutoff)
            self._last_sweep = now
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if len(hits) >= self.limit:
            return False
        hits.append(now)
        return True

    def _sweep(self, cutoff: float) -> None:
        """Forget keys whose newest hit has left the window."""
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]

    def reset(self) -> None:
        self._hits.clear()
        self._last_sweep = self._clock()


class RedisRateLimiter:
    """Sliding window over a Redis sorted set (score = timestamp).

    Rejected requests are removed again so they do not extend the window.
    """

    def __init__(
        self,
        redis: Any,  # noqa: ANN401
        limit: int,
        window_seconds: float,
        prefix: str = "raid_ratelimit",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.redis = redis
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix
        self._clock = clock

    async def check(self, key: str) -> bool:
        now = self._clock()
        rkey = f"{self.prefix}:{key}"
        member = f"{now}:{uuid.uuid4().hex}"

        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(rkey, 0, now - self.window_seconds)
        pipe.zadd(rkey, {member: now})
        pipe.zcard(rkey)
        pipe.expire(rkey, int(self.window_seconds) + 1)
        results: list[Any] = await pipe.execute()

        if results[2] > self.limit:
            await self.redis.zrem(rkey, member)
            return False
        return True


_limiter: RateLimiter | None = None


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Build the configured limiter backend."""
    if settings.raid_rate_limit_backend == "redis":
        return RedisRateLimiter(
            get_redis(),
            limit=settings.raid_rate_limit_requests,
            window_seconds=settings.raid_rate_limit_window_seconds,
        )
    return InMemoryRateLimiter(
        limit=settings.raid_rate_limit_requests,
        window_seconds=settings.raid_rate_limit_window_seconds,
    )


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter (FastAPI dependency)."""
    global _limiter  # noqa: PLW0603
    if _limiter is None:
        _limiter = build_rate_limiter(get_settings())
    return _limiter


def reset_rate_limiter() -> None:
    """Drop the cached limiter (useful for testing)."""
    global _limiter  # noqa: PLW0603
    _limiter = None
