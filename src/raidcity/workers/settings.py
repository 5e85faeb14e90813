"""arq worker settings module.

Import path for arq CLI: arq raidcity.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging
from datetime import timedelta

from arq import cron
from arq.connections import RedisSettings

from raidcity.config import get_settings
from raidcity.database import close_db, get_session_factory, init_db
from raidcity.middleware.logging import setup_logging
from raidcity.raids.execution import reconcile_raid_rewards
from raidcity.raids.windows import utc_now

logger = logging.getLogger(__name__)


async def reconcile_rewards(ctx: dict) -> int:  # type: ignore[type-arg]
    """Re-apply rewards for recent raids whose reward step never completed."""
    settings = get_settings()
    since = utc_now() - timedelta(hours=settings.reward_reconcile_lookback_hours)
    async with get_session_factory()() as db:
        return await reconcile_raid_rewards(db, since, limit=settings.reward_reconcile_batch_size)


async def worker_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    logger.info("Raid worker started")


async def worker_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    await close_db()
    logger.info("Raid worker shut down")


class WorkerSettings:
    """arq worker settings for raid background jobs."""

    functions = [reconcile_rewards]
    cron_jobs = [
        cron(reconcile_rewards, minute=set(range(0, 60, 5)), run_at_startup=True),
    ]
    on_startup = worker_startup
    on_shutdown = worker_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 2
    job_timeout = 300
