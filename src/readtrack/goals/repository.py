"""Persistence for reading goals and their progress audit rows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack.db.models import GoalProgressEntry, ReadingGoal
from readtrack.goals.progress import ACTIVE, COMPLETED, EXPIRED

# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


async def get_goal(db: AsyncSession, goal_id: int, *, for_update: bool = False) -> ReadingGoal | None:
    """Load a goal; with for_update=True the row is locked until commit (PostgreSQL)."""
    stmt = select(ReadingGoal).where(ReadingGoal.id == goal_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def create_goal(
    db: AsyncSession,
    user_id: int,
    name: str,
    target_count: int,
    deadline_at_utc: datetime,
    deadline_timezone: str,
    starts_at: datetime | None = None,
) -> ReadingGoal:
    now = datetime.now(timezone.utc)
    goal = ReadingGoal(
        user_id=user_id,
        name=name,
        target_count=target_count,
        progress_count=0,
        bonus_count=0,
        status=ACTIVE,
        starts_at=starts_at or now,
        deadline_at_utc=deadline_at_utc,
        deadline_timezone=deadline_timezone,
        completed_at=None,
        created_at=now,
        updated_at=now,
    )
    db.add(goal)
    await db.flush()
    return goal


async def update_goal(db: AsyncSession, goal_id: int, **fields: Any) -> ReadingGoal | None:
    """Apply a partial update; None means the goal does not exist."""
    goal = await get_goal(db, goal_id, for_update=True)
    if goal is None:
        return None
    for name, value in fields.items():
        setattr(goal, name, value)
    goal.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return goal


async def delete_goal(db: AsyncSession, goal_id: int) -> bool:
    """Delete a goal and its audit rows. False if the goal did not exist."""
    await db.execute(delete(GoalProgressEntry).where(GoalProgressEntry.goal_id == goal_id))
    result = await db.execute(delete(ReadingGoal).where(ReadingGoal.id == goal_id))
    return bool(result.rowcount)


async def find_eligible_goals(
    db: AsyncSession,
    reader_id: int,
    finished_at: datetime,
    now: datetime,
) -> list[ReadingGoal]:
    """Goals a completion at `finished_at` may credit, re-queried per event.

    The book must have been finished inside the goal window. Active goals
    qualify; completed goals qualify only while their deadline is still
    ahead (bonus books). Expired goals never qualify.
    """
    result = await db.execute(
        select(ReadingGoal)
        .where(
            ReadingGoal.user_id == reader_id,
            ReadingGoal.starts_at <= finished_at,
            ReadingGoal.deadline_at_utc >= finished_at,
            or_(
                ReadingGoal.status == ACTIVE,
                and_(ReadingGoal.status == COMPLETED, ReadingGoal.deadline_at_utc >= now),
            ),
        )
        .order_by(ReadingGoal.created_at, ReadingGoal.id)
    )
    return list(result.scalars())


async def list_goals(
    db: AsyncSession,
    user_id: int,
    status: str | None = None,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[ReadingGoal], int]:
    """One page of a reader's goals: active first, then by deadline."""
    filters = [ReadingGoal.user_id == user_id]
    if status is not None:
        filters.append(ReadingGoal.status == status)

    status_order = case(
        (ReadingGoal.status == ACTIVE, 1),
        (ReadingGoal.status == COMPLETED, 2),
        (ReadingGoal.status == EXPIRED, 3),
        else_=4,
    )
    total = await db.scalar(select(func.count()).select_from(ReadingGoal).where(*filters))
    result = await db.execute(
        select(ReadingGoal)
        .where(*filters)
        .order_by(status_order, ReadingGoal.deadline_at_utc.asc(), ReadingGoal.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars()), int(total or 0)


async def find_goals_by_user(db: AsyncSession, user_id: int) -> list[ReadingGoal]:
    result = await db.execute(
        select(ReadingGoal).where(ReadingGoal.user_id == user_id).order_by(ReadingGoal.id)
    )
    return list(result.scalars())


async def find_overdue_active_goals(db: AsyncSession, now: datetime) -> list[int]:
    """Ids of active goals whose deadline has elapsed."""
    result = await db.execute(
        select(ReadingGoal.id).where(
            ReadingGoal.status == ACTIVE,
            ReadingGoal.deadline_at_utc < now,
        ).order_by(ReadingGoal.id)
    )
    return list(result.scalars())


# ---------------------------------------------------------------------------
# Progress audit rows
# ---------------------------------------------------------------------------


async def create_progress_entry(
    db: AsyncSession,
    goal_id: int,
    reading_entry_id: int,
    book_id: int,
    applied_from_status: str | None = None,
) -> GoalProgressEntry:
    row = GoalProgressEntry(
        goal_id=goal_id,
        reading_entry_id=reading_entry_id,
        book_id=book_id,
        applied_from_status=applied_from_status,
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    await db.flush()
    return row


async def get_progress_entry(
    db: AsyncSession, goal_id: int, reading_entry_id: int
) -> GoalProgressEntry | None:
    result = await db.execute(
        select(GoalProgressEntry).where(
            GoalProgressEntry.goal_id == goal_id,
            GoalProgressEntry.reading_entry_id == reading_entry_id,
        )
    )
    return result.scalar_one_or_none()


async def find_progress_by_goal(db: AsyncSession, goal_id: int) -> list[GoalProgressEntry]:
    result = await db.execute(
        select(GoalProgressEntry)
        .where(GoalProgressEntry.goal_id == goal_id)
        .order_by(GoalProgressEntry.created_at, GoalProgressEntry.id)
    )
    return list(result.scalars())


async def find_progress_by_entry(db: AsyncSession, reading_entry_id: int) -> list[GoalProgressEntry]:
    result = await db.execute(
        select(GoalProgressEntry)
        .where(GoalProgressEntry.reading_entry_id == reading_entry_id)
        .order_by(GoalProgressEntry.goal_id)
    )
    return list(result.scalars())


async def delete_progress_entry(db: AsyncSession, goal_id: int, reading_entry_id: int) -> bool:
    """Delete the audit row for (goal, entry). False if there was none."""
    result = await db.execute(
        delete(GoalProgressEntry).where(
            GoalProgressEntry.goal_id == goal_id,
            GoalProgressEntry.reading_entry_id == reading_entry_id,
        )
    )
    return bool(result.rowcount)
