"""Full reconciliation of a goal from reading history, plus manual override.

Both paths trust the count they are given and apply count-based
completion in both directions, whether or not the deadline has passed.
This differs on purpose from the event path in goals.updater, which keeps
a completion on record once the goal window has closed. Audit rows are
neither rebuilt nor consulted here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from readtrack.db.models import ReadingGoal
from readtrack.errors import UnauthorizedError, ValidationError
from readtrack.goals.concurrency import run_goal_mutation
from readtrack.goals.progress import ProgressSnapshot, compute_progress
from readtrack.goals.state import apply_count_based_completion, set_progress
from readtrack.reading.repository import find_finished_entries_in_window

logger = logging.getLogger(__name__)


def _check_owner(goal: ReadingGoal, reader_id: int) -> None:
    if goal.user_id != reader_id:
        raise UnauthorizedError("You do not own this goal")


async def count_books_in_window(db: AsyncSession, goal: ReadingGoal) -> int:
    """Authoritative count: finished entries with finished_at in [starts_at, deadline]."""
    entries = await find_finished_entries_in_window(
        db, goal.user_id, goal.starts_at, goal.deadline_at_utc
    )
    return len(entries)


def _set_count(goal: ReadingGoal, count: int, now: datetime) -> ReadingGoal:
    before = (goal.progress_count, goal.status)
    set_progress(goal, count)
    apply_count_based_completion(goal, now)
    goal.updated_at = now
    if before != (goal.progress_count, goal.status):
        logger.info(
            "Goal %s reconciled: %d/%s -> %d/%s",
            goal.id, before[0], before[1], goal.progress_count, goal.status,
        )
    return goal


async def sync_goal_progress(
    session_factory: async_sessionmaker[AsyncSession],
    goal_id: int,
    reader_id: int,
    now: datetime | None = None,
) -> ReadingGoal:
    """Recompute progress_count from source data and converge status."""
    if now is None:
        now = datetime.now(timezone.utc)

    async def _sync(db: AsyncSession, goal: ReadingGoal) -> ReadingGoal:
        _check_owner(goal, reader_id)
        count = await count_books_in_window(db, goal)
        _set_count(goal, count, now)
        await db.flush()
        return goal

    return await run_goal_mutation(session_factory, goal_id, _sync)


async def update_goal_progress(
    session_factory: async_sessionmaker[AsyncSession],
    goal_id: int,
    reader_id: int,
    new_count: int,
    now: datetime | None = None,
) -> ReadingGoal:
    """Manual override of progress_count, same bidirectional rule as sync."""
    if isinstance(new_count, bool) or not isinstance(new_count, int) or new_count < 0:
        raise ValidationError("Progress count must be a non-negative integer")
    if now is None:
        now = datetime.now(timezone.utc)

    async def _override(db: AsyncSession, goal: ReadingGoal) -> ReadingGoal:
        _check_owner(goal, reader_id)
        _set_count(goal, new_count, now)
        await db.flush()
        return goal

    return await run_goal_mutation(session_factory, goal_id, _override)


def get_progress_snapshot(goal: ReadingGoal, now: datetime | None = None) -> ProgressSnapshot:
    return compute_progress(goal, now)

