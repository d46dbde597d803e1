"""Tests for the goal progress calculator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from readtrack.goals.progress import (
    ACTIVE,
    COMPLETED,
    EXPIRED,
    LABEL_COMPLETED,
    LABEL_IN_PROGRESS,
    LABEL_NOT_STARTED,
    LABEL_OVERDUE,
    calculate_bonus,
    compute_progress,
    days_until,
    progress_percentage,
    summarize_goals,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@dataclass
class FakeGoal:
    target_count: int
    progress_count: int
    status: str = ACTIVE
    deadline_at_utc: datetime = NOW + timedelta(days=10)


class TestPercentage:
    @pytest.mark.parametrize(
        ("progress", "target", "expected"),
        [(0, 3, 0), (1, 3, 33), (2, 3, 66), (3, 3, 100), (15, 10, 100), (7, 20, 35)],
    )
    def test_floor_and_clamp(self, progress, target, expected):
        assert progress_percentage(progress, target) == expected

    def test_zero_target_is_zero(self):
        assert progress_percentage(5, 0) == 0


class TestBonus:
    def test_bonus_is_overshoot(self):
        assert calculate_bonus(13, 10) == 3

    def test_bonus_never_negative(self):
        assert calculate_bonus(4, 10) == 0


class TestDaysUntil:
    def test_partial_day_rounds_up(self):
        assert days_until(NOW + timedelta(days=2, hours=1), NOW) == 3

    def test_exact_days(self):
        assert days_until(NOW + timedelta(days=2), NOW) == 2

    def test_past_deadline_is_not_positive(self):
        assert days_until(NOW - timedelta(days=2), NOW) == -2


class TestComputeProgress:
    def test_not_started(self):
        snap = compute_progress(FakeGoal(target_count=5, progress_count=0), NOW)
        assert snap.status_label == LABEL_NOT_STARTED
        assert snap.books_remaining == 5
        assert snap.days_remaining == 10

    def test_in_progress(self):
        snap = compute_progress(FakeGoal(target_count=5, progress_count=2), NOW)
        assert snap.status_label == LABEL_IN_PROGRESS
        assert snap.percentage == 40
        assert not snap.is_overdue

    def test_completed_by_status(self):
        goal = FakeGoal(target_count=5, progress_count=4, status=COMPLETED)
        snap = compute_progress(goal, NOW)
        assert snap.is_completed
        assert snap.status_label == LABEL_COMPLETED

    def test_completed_by_count(self):
        snap = compute_progress(FakeGoal(target_count=5, progress_count=6), NOW)
        assert snap.is_completed
        assert snap.books_remaining == 0
        assert snap.percentage == 100

    def test_overdue(self):
        goal = FakeGoal(target_count=5, progress_count=2, deadline_at_utc=NOW - timedelta(hours=1))
        snap = compute_progress(goal, NOW)
        assert snap.is_overdue
        assert snap.status_label == LABEL_OVERDUE

    def test_expired_goal_reads_as_overdue(self):
        goal = FakeGoal(target_count=5, progress_count=2, status=EXPIRED, deadline_at_utc=NOW - timedelta(days=3))
        assert compute_progress(goal, NOW).status_label == LABEL_OVERDUE

    def test_completed_after_deadline_is_not_overdue(self):
        goal = FakeGoal(target_count=2, progress_count=2, status=COMPLETED, deadline_at_utc=NOW - timedelta(days=1))
        snap = compute_progress(goal, NOW)
        assert not snap.is_overdue
        assert snap.status_label == LABEL_COMPLETED

    def test_to_dict(self):
        data = compute_progress(FakeGoal(target_count=4, progress_count=1), NOW).to_dict()
        assert data["percentage"] == 25
        assert data["status_label"] == LABEL_IN_PROGRESS


class TestSummarize:
    def test_counts_by_label(self):
        goals = [
            FakeGoal(target_count=3, progress_count=3, status=COMPLETED),
            FakeGoal(target_count=3, progress_count=1),
            FakeGoal(target_count=3, progress_count=0),
            FakeGoal(target_count=3, progress_count=1, deadline_at_utc=NOW - timedelta(days=1)),
        ]
        stats = summarize_goals(goals, NOW)
        assert stats.total == 4
        assert stats.completed == 1
        assert stats.in_progress == 1
        assert stats.not_started == 1
        assert stats.overdue == 1
        assert stats.total_books_target == 12
        assert stats.total_books_read == 5

    def test_empty(self):
        stats = summarize_goals([], NOW)
        assert stats.total == 0
