"""Per-goal read-modify-write with row locking and bounded retries.

Every mutation of a goal row (credit, reversal, reconciliation, manual
override, expiry) goes through run_goal_mutation: one session, one
transaction, SELECT ... FOR UPDATE on the goal, then the caller's mutation.
The ReadingGoal mapper carries a version_id_col, so on backends without row
locks a concurrent writer surfaces as StaleDataError at flush time and the
whole unit is retried from a fresh read.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from readtrack.config import get_settings
from readtrack.db.models import ReadingGoal
from readtrack.errors import ConflictError, NotFoundError
from readtrack.goals.repository import get_goal

logger = logging.getLogger(__name__)

T = TypeVar("T")

GoalMutation = Callable[[AsyncSession, ReadingGoal], Awaitable[T]]

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_retryable(exc: BaseException) -> bool:
    """True for errors caused by a concurrent writer on the same goal."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, IntegrityError):
        # Two workers crediting the same (goal, entry); the retry sees the row and skips.
        return "reading_goal_progress" in str(exc.orig)
    if isinstance(exc, OperationalError) and "database is locked" in str(exc.orig):
        return True
    if isinstance(exc, DBAPIError):
        return _sqlstate(exc) in _RETRYABLE_SQLSTATES
    return False


async def run_goal_mutation(
    session_factory: async_sessionmaker[AsyncSession],
    goal_id: int,
    mutate: GoalMutation[T],
    *,
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
) -> T:
    """Run `mutate(db, goal)` atomically against one goal row.

    Raises NotFoundError if the goal does not exist and ConflictError once
    `max_attempts` conflicting attempts have been made. Errors that are not
    concurrency conflicts propagate unchanged on the first attempt.
    """
    settings = get_settings()
    if max_attempts is None:
        max_attempts = settings.goal_update_max_retries
    if backoff_seconds is None:
        backoff_seconds = settings.goal_update_retry_backoff_seconds
    max_attempts = max(1, max_attempts)

    for attempt in range(1, max_attempts + 1):
        try:
            async with session_factory() as db, db.begin():
                goal = await get_goal(db, goal_id, for_update=True)
                if goal is None:
                    raise NotFoundError("Goal", goal_id)
                return await mutate(db, goal)
        except (StaleDataError, DBAPIError) as exc:
            if not is_retryable(exc):
                raise
            if attempt == max_attempts:
                logger.error("Goal %s update gave up after %d conflicting attempts", goal_id, attempt)
                raise ConflictError(goal_id, attempt) from exc
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                "Goal %s update conflicted (attempt %d/%d), retrying in %.3fs",
                goal_id, attempt, max_attempts, delay,
            )
            await asyncio.sleep(delay)

    # Unreachable: the loop either returns or raises.
    raise ConflictError(goal_id, max_attempts)
