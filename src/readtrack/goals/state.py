"""Goal row state changes shared by the incremental and reconciliation paths."""

from __future__ import annotations

from datetime import datetime

from readtrack.db.models import ReadingGoal
from readtrack.goals.progress import ACTIVE, COMPLETED, calculate_bonus


def set_progress(goal: ReadingGoal, progress_count: int) -> None:
    """Set progress and keep bonus_count = max(0, progress - target)."""
    goal.progress_count = max(0, progress_count)
    goal.bonus_count = calculate_bonus(goal.progress_count, goal.target_count)


def mark_completed(goal: ReadingGoal, now: datetime) -> None:
    goal.status = COMPLETED
    goal.completed_at = now


def reopen(goal: ReadingGoal) -> None:
    goal.status = ACTIVE
    goal.completed_at = None


def apply_count_based_completion(goal: ReadingGoal, now: datetime) -> None:
    """Complete at/above target, reopen below it. The deadline is not consulted.

    Expired goals keep their status.
    """
    if goal.status not in (ACTIVE, COMPLETED):
        return
    if goal.progress_count >= goal.target_count:
        if goal.status != COMPLETED:
            mark_completed(goal, now)
    elif goal.status == COMPLETED:
        reopen(goal)
