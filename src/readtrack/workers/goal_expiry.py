"""Goal expiry arq worker: flips overdue active goals to expired.

Import path for arq CLI: arq readtrack.workers.goal_expiry.GoalExpiryWorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from readtrack.config import get_settings
from readtrack.database import close_db, get_session_factory, init_db
from readtrack.goals.service import expire_overdue_goals

logger = logging.getLogger(__name__)


async def goal_expiry_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize the DB engine on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["session_factory"] = get_session_factory()
    logger.info("Goal expiry worker started")


async def goal_expiry_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    logger.info("Goal expiry worker shut down")


async def expire_goals(ctx: dict) -> int:  # type: ignore[type-arg]
    """Periodic task: expire every active goal whose deadline has passed."""
    expired = await expire_overdue_goals(ctx["session_factory"])
    logger.info("Goal expiry run complete: %d expired", len(expired))
    return len(expired)


def _cron_minutes(step: int) -> set[int]:
    step = max(1, min(step, 60))
    return set(range(0, 60, step))


class GoalExpiryWorkerSettings:
    """arq worker settings for the goal expiry scheduler."""

    functions = [expire_goals]
    cron_jobs = [
        cron(expire_goals, minute=_cron_minutes(get_settings().goal_expiry_cron_minute), run_at_startup=True),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    on_startup = goal_expiry_startup
    on_shutdown = goal_expiry_shutdown
    max_jobs = 1
    job_timeout = 300
