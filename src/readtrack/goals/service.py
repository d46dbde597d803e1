"""Goal lifecycle: creation, editing, deletion, listing, statistics and expiry."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from readtrack.config import get_settings
from readtrack.db.models import ReadingGoal
from readtrack.errors import NotFoundError, ReadTrackError, UnauthorizedError, ValidationError
from readtrack.goals import repository
from readtrack.goals.concurrency import run_goal_mutation
from readtrack.goals.state import apply_count_based_completion, set_progress
from readtrack.goals.progress import (
    ACTIVE,
    EXPIRED,
    GOAL_STATUSES,
    GoalStatistics,
    ProgressSnapshot,
    compute_progress,
    summarize_goals,
)

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255


def compute_deadline(days_to_complete: int, timezone_name: str, now: datetime | None = None) -> datetime:
    """End of the local day `days_to_complete` days from now, as a UTC instant."""
    try:
        tz = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone: {timezone_name}") from exc
    if now is None:
        now = datetime.now(timezone.utc)

    local_day = (now.astimezone(tz) + timedelta(days=days_to_complete)).date()
    local_end = datetime.combine(local_day, time.max, tzinfo=tz)
    return local_end.astimezone(timezone.utc)


def validate_goal_input(name: str, target_count: int, days_to_complete: int, timezone_name: str) -> list[str]:
    """Collect every validation problem instead of failing on the first."""
    max_target = get_settings().goal_max_target_count
    errors: list[str] = []
    if not name or not name.strip():
        errors.append("Goal name is required")
    elif len(name.strip()) > MAX_NAME_LENGTH:
        errors.append(f"Goal name cannot exceed {MAX_NAME_LENGTH} characters")
    if isinstance(target_count, bool) or not isinstance(target_count, int) or target_count <= 0:
        errors.append("Target count must be a positive integer")
    elif target_count > max_target:
        errors.append(f"Target count cannot exceed {max_target}")
    if isinstance(days_to_complete, bool) or not isinstance(days_to_complete, int) or days_to_complete < 1:
        errors.append("Days to complete must be at least 1 day")
    if not timezone_name:
        errors.append("Timezone is required")
    return errors


async def create_goal(
    db: AsyncSession,
    user_id: int,
    name: str,
    target_count: int,
    days_to_complete: int,
    timezone_name: str,
    now: datetime | None = None,
) -> ReadingGoal:
    """Create an active goal whose window runs from now to the computed deadline."""
    errors = validate_goal_input(name, target_count, days_to_complete, timezone_name)
    if errors:
        raise ValidationError(f"Validation failed: {', '.join(errors)}")
    if now is None:
        now = datetime.now(timezone.utc)

    deadline = compute_deadline(days_to_complete, timezone_name, now)
    if deadline <= now:
        raise ValidationError("Deadline must be in the future. Please choose a longer timeframe.")

    goal = await repository.create_goal(
        db,
        user_id=user_id,
        name=name.strip(),
        target_count=target_count,
        deadline_at_utc=deadline,
        deadline_timezone=timezone_name,
        starts_at=now,
    )
    await db.commit()
    logger.info("Reading goal %s created for user %s (target=%d, deadline=%s)",
                goal.id, user_id, target_count, deadline.isoformat())
    return goal


async def get_owned_goal(db: AsyncSession, goal_id: int, reader_id: int) -> ReadingGoal:
    """Load a goal for a reader; NotFoundError / UnauthorizedError otherwise."""
    goal = await repository.get_goal(db, goal_id)
    if goal is None:
        raise NotFoundError("Goal", goal_id)
    if goal.user_id != reader_id:
        raise UnauthorizedError("You do not own this goal")
    return goal


async def update_goal(
    session_factory: async_sessionmaker[AsyncSession],
    goal_id: int,
    reader_id: int,
    *,
    target_count: int | None = None,
    days_to_add: int | None = None,
    now: datetime | None = None,
) -> ReadingGoal:
    """Change the target and/or push the deadline out on an active goal.

    A new target recomputes the bonus and completes the goal if progress
    already meets it. Completed and expired goals cannot be edited.
    """
    if target_count is None and days_to_add is None:
        raise ValidationError("No valid fields to update")
    if target_count is not None:
        max_target = get_settings().goal_max_target_count
        if isinstance(target_count, bool) or not isinstance(target_count, int) or target_count <= 0:
            raise ValidationError("Target count must be a positive integer")
        if target_count > max_target:
            raise ValidationError(f"Target count cannot exceed {max_target}")
    if days_to_add is not None and (
        isinstance(days_to_add, bool) or not isinstance(days_to_add, int) or days_to_add < 1
    ):
        raise ValidationError("Days to add must be at least 1")
    if now is None:
        now = datetime.now(timezone.utc)

    async def _edit(db: AsyncSession, goal: ReadingGoal) -> ReadingGoal:
        if goal.user_id != reader_id:
            raise UnauthorizedError("You do not own this goal")
        if goal.status != ACTIVE:
            raise ValidationError(f"Cannot edit {goal.status} goals. Only active goals can be modified.")
        if target_count is not None:
            goal.target_count = target_count
            set_progress(goal, goal.progress_count)
            apply_count_based_completion(goal, now)
        if days_to_add is not None:
            goal.deadline_at_utc = goal.deadline_at_utc + timedelta(days=days_to_add)
        goal.updated_at = now
        await db.flush()
        return goal

    goal = await run_goal_mutation(session_factory, goal_id, _edit)
    logger.info("Goal %s edited by user %s (target=%d, deadline=%s, status=%s)",
                goal.id, reader_id, goal.target_count, goal.deadline_at_utc.isoformat(), goal.status)
    return goal


async def delete_goal(db: AsyncSession, goal_id: int, reader_id: int) -> None:
    """Remove a goal together with its credit rows."""
    await get_owned_goal(db, goal_id, reader_id)
    await repository.delete_goal(db, goal_id)
    await db.commit()
    logger.info("Goal %s deleted by user %s", goal_id, reader_id)


async def list_goals_with_progress(
    db: AsyncSession,
    user_id: int,
    status: str | None = None,
    page: int = 1,
    page_size: int | None = None,
    now: datetime | None = None,
) -> tuple[list[tuple[ReadingGoal, ProgressSnapshot]], int]:
    if status is not None and status not in GOAL_STATUSES:
        raise ValidationError(f"Unknown goal status: {status}")
    if page < 1:
        raise ValidationError("Page must be at least 1")
    if page_size is None:
        page_size = get_settings().goals_page_size

    goals, total = await repository.list_goals(db, user_id, status=status, page=page, page_size=page_size)
    return [(goal, compute_progress(goal, now)) for goal in goals], total


async def goal_statistics(db: AsyncSession, user_id: int, now: datetime | None = None) -> GoalStatistics:
    goals = await repository.find_goals_by_user(db, user_id)
    return summarize_goals(goals, now)


async def expire_overdue_goals(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
) -> list[int]:
    """Move active goals past their deadline with the target unmet to expired.

    Each goal is expired in its own locked transaction and re-checked
    there, so a goal completed in the meantime is left alone.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    async with session_factory() as db:
        candidate_ids = await repository.find_overdue_active_goals(db, now)

    async def _expire(db: AsyncSession, goal: ReadingGoal) -> bool:
        if goal.status != ACTIVE or goal.deadline_at_utc >= now:
            return False
        if goal.progress_count >= goal.target_count:
            return False
        goal.status = EXPIRED
        goal.updated_at = now
        await db.flush()
        return True

    expired: list[int] = []
    for goal_id in candidate_ids:
        try:
            if await run_goal_mutation(session_factory, goal_id, _expire):
                expired.append(goal_id)
        except (ReadTrackError, SQLAlchemyError):
            logger.exception("Failed to expire goal %s", goal_id)

    if expired:
        logger.info("Expired %d overdue goals", len(expired))
    return expired
