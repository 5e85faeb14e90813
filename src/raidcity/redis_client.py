"""Shared Redis pool.

Two consumers: the app-wide IP limiter (optional, it fails open) and the
``redis`` backend of the per-caller raid limiter (required when selected).
"""

from __future__ import annotations

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from raidcity.config import Settings

logger = structlog.get_logger()

_pool: redis.Redis | None = None


def redis_required(settings: Settings) -> bool:
    """Raid limiting cannot work without Redis when it is the selected backend."""
    return settings.raid_rate_limit_backend == "redis"


async def init_redis(settings: Settings) -> None:
    """Open the pool and check it once.

    An unreachable Redis is fatal only when the raid limiter depends on it;
    otherwise the service starts and the app-wide limiter stays open.
    """
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.redis_max_connections,
    )
    try:
        await _pool.ping()
    except RedisError as exc:
        if redis_required(settings):
            await close_redis()
            raise
        logger.warning("redis_unavailable", error=str(exc), raid_limiter=settings.raid_rate_limit_backend)


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client. Raises ``RuntimeError`` before ``init_redis``."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def ping_redis() -> str:
    """``"ok"`` or a short error string, for readiness reporting."""
    try:
        await get_redis().ping()
    except (RuntimeError, RedisError) as exc:
        return f"error: {exc}"
    return "ok"
