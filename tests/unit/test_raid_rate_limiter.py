"""Rate limiter tests: in-memory sliding window and the Redis sorted-set variant."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from raidcity.config import Settings
from raidcity.raids.rate_limiter import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    build_rate_limiter,
    get_rate_limiter,
    reset_rate_limiter,
)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestInMemoryRateLimiter:
    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        limiter = InMemoryRateLimiter(limit=5, window_seconds=10, clock=FakeClock())
        results = [await limiter.check("raid-preview:alice") for _ in range(6)]
        assert results == [True] * 5 + [False]

    @pytest.mark.asyncio
    async def test_window_slides(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(limit=2, window_seconds=10, clock=clock)
        assert await limiter.check("k")
        clock.now += 5
        assert await limiter.check("k")
        assert not await limiter.check("k")

        # First hit leaves the window, second is still inside
        clock.now += 5
        assert await limiter.check("k")
        assert not await limiter.check("k")

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter(limit=1, window_seconds=10, clock=FakeClock())
        assert await limiter.check("raid-preview:alice")
        assert await limiter.check("raid-execute:alice")
        assert await limiter.check("raid-preview:bob")
        assert not await limiter.check("raid-preview:alice")

    @pytest.mark.asyncio
    async def test_rejected_requests_do_not_extend_window(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(limit=1, window_seconds=10, clock=clock)
        assert await limiter.check("k")
        for _ in range(3):
            clock.now += 3
            assert not await limiter.check("k")
        clock.now += 1.5
        assert await limiter.check("k")

    @pytest.mark.asyncio
    async def test_reset(self):
        limiter = InMemoryRateLimiter(limit=1, window_seconds=10, clock=FakeClock())
        assert await limiter.check("k")
        limiter.reset()
        assert await limiter.check("k")

    @pytest.mark.asyncio
    async def test_idle_callers_are_forgotten(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(limit=5, window_seconds=10, clock=clock)
        for login in ("alice", "bob", "carol"):
            assert await limiter.check(f"raid-preview:{login}")
        assert limiter.tracked_keys == 3

        clock.now += 11
        assert await limiter.check("raid-preview:dave")
        assert limiter.tracked_keys == 1

    @pytest.mark.asyncio
    async def test_active_callers_survive_sweep(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(limit=2, window_seconds=10, clock=clock)
        assert await limiter.check("raid-preview:alice")
        clock.now += 6
        assert await limiter.check("raid-preview:alice")

        clock.now += 5
        assert await limiter.check("raid-preview:bob")
        assert limiter.tracked_keys == 2
        # alice's second hit is still inside the window
        assert await limiter.check("raid-preview:alice")
        assert not await limiter.check("raid-preview:alice")


def _mock_redis(zcard: int) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, 1, zcard, True])
    redis = MagicMock()
    redis.pipeline.return_value = pipe
    redis.zrem = AsyncMock(return_value=1)
    return redis


class TestRedisRateLimiter:
    @pytest.mark.asyncio
    async def test_under_limit_allowed(self):
        redis = _mock_redis(zcard=3)
        limiter = RedisRateLimiter(redis, limit=5, window_seconds=10, clock=FakeClock(500.0))

        assert await limiter.check("raid-execute:alice") is True

        pipe = redis.pipeline.return_value
        pipe.zremrangebyscore.assert_called_once_with("raid_ratelimit:raid-execute:alice", 0, 490.0)
        pipe.expire.assert_called_once_with("raid_ratelimit:raid-execute:alice", 11)
        redis.zrem.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_over_limit_rejected_and_entry_removed(self):
        redis = _mock_redis(zcard=6)
        limiter = RedisRateLimiter(redis, limit=5, window_seconds=10, clock=FakeClock(500.0))

        assert await limiter.check("raid-execute:alice") is False

        added = redis.pipeline.return_value.zadd.call_args.args[1]
        member = next(iter(added))
        redis.zrem.assert_awaited_once_with("raid_ratelimit:raid-execute:alice", member)


class TestLimiterFactory:
    def test_memory_backend_by_default(self):
        limiter = build_rate_limiter(Settings(raid_rate_limit_requests=7, raid_rate_limit_window_seconds=20))
        assert isinstance(limiter, InMemoryRateLimiter)
        assert limiter.limit == 7
        assert limiter.window_seconds == 20

    def test_redis_backend(self):
        fake = MagicMock()
        with patch("raidcity.raids.rate_limiter.get_redis", return_value=fake):
            limiter = build_rate_limiter(Settings(raid_rate_limit_backend="redis"))
        assert isinstance(limiter, RedisRateLimiter)
        assert limiter.redis is fake

    def test_singleton_until_reset(self):
        reset_rate_limiter()
        first = get_rate_limiter()
        assert get_rate_limiter() is first
        reset_rate_limiter()
        assert get_rate_limiter() is not first
        reset_rate_limiter()
