"""Derived goal metrics: pure functions over an already-fetched goal."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

ACTIVE = "active"
COMPLETED = "completed"
EXPIRED = "expired"

GOAL_STATUSES: tuple[str, ...] = (ACTIVE, COMPLETED, EXPIRED)

LABEL_COMPLETED = "completed"
LABEL_OVERDUE = "overdue"
LABEL_NOT_STARTED = "not-started"
LABEL_IN_PROGRESS = "in-progress"

_ONE_DAY = timedelta(days=1)


class GoalLike(Protocol):
    target_count: int
    progress_count: int
    status: str
    deadline_at_utc: datetime


@dataclass(frozen=True)
class ProgressSnapshot:
    percentage: int
    is_completed: bool
    is_overdue: bool
    days_remaining: int
    books_remaining: int
    status_label: str

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class GoalStatistics:
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    not_started: int = 0
    overdue: int = 0
    total_books_target: int = 0
    total_books_read: int = 0


def calculate_bonus(progress_count: int, target_count: int) -> int:
    """Books read beyond the target; never negative."""
    return max(0, progress_count - target_count)


def progress_percentage(progress_count: int, target_count: int) -> int:
    """floor(progress / target * 100) clamped to [0, 100]; 0 for a zero target."""
    if target_count <= 0:
        return 0
    # Integer floor division avoids float error on exact multiples.
    return max(0, min(100, (progress_count * 100) // target_count))


def days_until(deadline: datetime, now: datetime) -> int:
    """Whole days left, rounded up; negative once the deadline has passed."""
    return math.ceil((deadline - now) / _ONE_DAY)


def compute_progress(goal: GoalLike, now: datetime | None = None) -> ProgressSnapshot:
    """Compute the progress snapshot shown for a goal."""
    if now is None:
        now = datetime.now(timezone.utc)

    is_completed = goal.status == COMPLETED or goal.progress_count >= goal.target_count
    is_overdue = now > goal.deadline_at_utc and not is_completed

    if is_completed:
        label = LABEL_COMPLETED
    elif is_overdue:
        label = LABEL_OVERDUE
    elif goal.progress_count == 0:
        label = LABEL_NOT_STARTED
    else:
        label = LABEL_IN_PROGRESS

    return ProgressSnapshot(
        percentage=progress_percentage(goal.progress_count, goal.target_count),
        is_completed=is_completed,
        is_overdue=is_overdue,
        days_remaining=days_until(goal.deadline_at_utc, now),
        books_remaining=max(0, goal.target_count - goal.progress_count),
        status_label=label,
    )


def summarize_goals(goals: Iterable[GoalLike], now: datetime | None = None) -> GoalStatistics:
    """Aggregate counts per status label plus book totals."""
    if now is None:
        now = datetime.now(timezone.utc)

    stats = GoalStatistics()
    for goal in goals:
        label = compute_progress(goal, now).status_label
        stats.total += 1
        stats.total_books_target += goal.target_count
        stats.total_books_read += goal.progress_count
        if label == LABEL_COMPLETED:
            stats.completed += 1
        elif label == LABEL_OVERDUE:
            stats.overdue += 1
        elif label == LABEL_NOT_STARTED:
            stats.not_started += 1
        else:
            stats.in_progress += 1
    return stats
