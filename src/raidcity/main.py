"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from raidcity.config import get_settings
from raidcity.database import close_db, get_session, init_db
from raidcity.health.router import router as health_router
from raidcity.middleware import setup_middleware
from raidcity.raids.rate_limiter import reset_rate_limiter
from raidcity.raids.router import router as raid_router
from raidcity.raids.seed import seed_raid_data
from raidcity.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings)
    reset_rate_limiter()

    # Seed achievements and raid catalog (idempotent)
    try:
        async for db in get_session():
            await seed_raid_data(db)
            break
    except SQLAlchemyError:
        logger.warning("Raid seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Raid City API",
        description="Raids between claimed buildings in the city",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(raid_router)

    return app


app = create_app()
