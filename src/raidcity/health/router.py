"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from raidcity.config import get_settings
from raidcity.database import get_session
from raidcity.db.models import Achievement
from raidcity.raids.seed import ACHIEVEMENT_SEED_DATA
from raidcity.redis_client import ping_redis, redis_required

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe. Returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness for raids.

    The database must answer and hold the seeded title achievements, since
    execution awards them. Redis is pinged only when the raid limiter uses it.
    """
    settings = get_settings()
    checks: dict[str, object] = {"raid_limiter": settings.raid_rate_limit_backend}
    required = ["database", "raid_catalog"]

    try:
        seeded = (await db.execute(select(func.count(Achievement.id)))).scalar_one()
        checks["database"] = "ok"
        checks["raid_catalog"] = "ok" if seeded >= len(ACHIEVEMENT_SEED_DATA) else "not seeded"
    except SQLAlchemyError as exc:
        checks["database"] = f"error: {exc}"
        checks["raid_catalog"] = "unknown"

    if redis_required(settings):
        checks["redis"] = await ping_redis()
        required.append("redis")

    all_ok = all(checks[name] == "ok" for name in required)
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
