"""Incremental goal updates driven by completion / uncompletion events.

Each credited goal gets one GoalProgressEntry per reading entry. That row
is what makes a repeated completion a no-op and an uncompletion an exact
reversal. Goals are updated one transaction each: a failure on one goal is
reported and never rolls back another.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from readtrack.db.models import ReadingGoal
from readtrack.errors import ReadTrackError
from readtrack.goals.concurrency import run_goal_mutation
from readtrack.goals.progress import ACTIVE, COMPLETED
from readtrack.goals.repository import (
    create_progress_entry,
    delete_progress_entry,
    find_eligible_goals,
    find_progress_by_entry,
    get_progress_entry,
)
from readtrack.goals.state import mark_completed, reopen, set_progress
from readtrack.reading.events import CompletionEvent, UncompletionEvent

logger = logging.getLogger(__name__)


@dataclass
class GoalUpdateFailure:
    goal_id: int
    error: str
    exception: Exception | None = field(default=None, repr=False, compare=False)


@dataclass
class GoalUpdateReport:
    """Outcome of applying one event across all affected goals."""

    updated: list[ReadingGoal] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failures: list[GoalUpdateFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def is_creditable(goal: ReadingGoal, finished_at: datetime, now: datetime) -> bool:
    """Re-check eligibility against the locked row.

    Expired goals and completed goals whose deadline has passed are frozen.
    """
    if not goal.starts_at <= finished_at <= goal.deadline_at_utc:
        return False
    if goal.status == ACTIVE:
        return True
    return goal.status == COMPLETED and now <= goal.deadline_at_utc


async def _credit(
    db: AsyncSession,
    goal: ReadingGoal,
    *,
    event: CompletionEvent,
    now: datetime,
) -> ReadingGoal | None:
    if not is_creditable(goal, event.finished_at, now):
        return None
    if await get_progress_entry(db, goal.id, event.reading_entry_id) is not None:
        return None

    await create_progress_entry(
        db,
        goal_id=goal.id,
        reading_entry_id=event.reading_entry_id,
        book_id=event.book_id,
        applied_from_status=event.from_status,
    )
    set_progress(goal, goal.progress_count + 1)
    if goal.progress_count >= goal.target_count and goal.status != COMPLETED:
        mark_completed(goal, now)
        logger.info("Goal %s completed (%d/%d)", goal.id, goal.progress_count, goal.target_count)
    goal.updated_at = now
    await db.flush()
    return goal


async def _reverse(
    db: AsyncSession,
    goal: ReadingGoal,
    *,
    event: UncompletionEvent,
    now: datetime,
) -> ReadingGoal | None:
    if goal.status not in (ACTIVE, COMPLETED):
        return None
    if not await delete_progress_entry(db, goal.id, event.reading_entry_id):
        return None

    set_progress(goal, goal.progress_count - 1)
    if goal.status == COMPLETED and goal.progress_count < goal.target_count:
        if now <= goal.deadline_at_utc:
            reopen(goal)
            logger.info("Goal %s reopened (%d/%d)", goal.id, goal.progress_count, goal.target_count)
        else:
            # Window closed: completion stays on record.
            logger.info("Goal %s stays completed after deadline (%d/%d)",
                        goal.id, goal.progress_count, goal.target_count)
    goal.updated_at = now
    await db.flush()
    return goal


async def _apply_to_goals(
    session_factory: async_sessionmaker[AsyncSession],
    goal_ids: list[int],
    mutation: partial,
    action: str,
) -> GoalUpdateReport:
    report = GoalUpdateReport()
    for goal_id in goal_ids:
        try:
            goal = await run_goal_mutation(session_factory, goal_id, mutation)
        except (ReadTrackError, SQLAlchemyError) as exc:
            logger.exception("Failed to %s goal %s", action, goal_id)
            report.failures.append(GoalUpdateFailure(goal_id=goal_id, error=str(exc), exception=exc))
            continue
        if goal is None:
            report.skipped.append(goal_id)
        else:
            report.updated.append(goal)
    return report


async def on_book_completed(
    session_factory: async_sessionmaker[AsyncSession],
    event: CompletionEvent,
    now: datetime | None = None,
) -> GoalUpdateReport:
    """Credit every eligible goal of the reader exactly once for this entry."""
    if now is None:
        now = datetime.now(timezone.utc)

    async with session_factory() as db:
        candidates = await find_eligible_goals(db, event.reader_id, event.finished_at, now)
        goal_ids = [goal.id for goal in candidates]

    report = await _apply_to_goals(
        session_factory, goal_ids, partial(_credit, event=event, now=now), "credit"
    )
    logger.info(
        "Completion of entry %s: %d goals credited, %d skipped, %d failed",
        event.reading_entry_id, len(report.updated), len(report.skipped), len(report.failures),
    )
    return report


async def on_book_uncompleted(
    session_factory: async_sessionmaker[AsyncSession],
    event: UncompletionEvent,
    now: datetime | None = None,
) -> GoalUpdateReport:
    """Reverse the credit this entry gave each goal, using the audit rows."""
    if now is None:
        now = datetime.now(timezone.utc)

    async with session_factory() as db:
        rows = await find_progress_by_entry(db, event.reading_entry_id)
        goal_ids = [row.goal_id for row in rows]

    report = await _apply_to_goals(
        session_factory, goal_ids, partial(_reverse, event=event, now=now), "reverse"
    )
    logger.info(
        "Uncompletion of entry %s: %d goals reversed, %d skipped, %d failed",
        event.reading_entry_id, len(report.updated), len(report.skipped), len(report.failures),
    )
    return report


async def dispatch_event(
    session_factory: async_sessionmaker[AsyncSession],
    event: CompletionEvent | UncompletionEvent | None,
    now: datetime | None = None,
) -> GoalUpdateReport:
    """Route a reading event to the matching handler. None is a no-op."""
    if isinstance(event, CompletionEvent):
        return await on_book_completed(session_factory, event, now)
    if isinstance(event, UncompletionEvent):
        return await on_book_uncompleted(session_factory, event, now)
    return GoalUpdateReport()
