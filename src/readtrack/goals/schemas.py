"""Pydantic request/response models for goal endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class GoalCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    target_count: int = Field(gt=0)
    days_to_complete: int = Field(ge=1)
    timezone: str = "UTC"


class GoalUpdateRequest(BaseModel):
    target_count: int | None = Field(default=None, gt=0)
    days_to_add: int | None = Field(default=None, ge=1)


class ProgressOverrideRequest(BaseModel):
    progress_count: int = Field(ge=0)


class ProgressResponse(BaseModel):
    percentage: int
    is_completed: bool
    is_overdue: bool
    days_remaining: int
    books_remaining: int
    status_label: str


class GoalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    target_count: int
    progress_count: int
    bonus_count: int
    status: str
    starts_at: datetime
    deadline_at_utc: datetime
    deadline_timezone: str
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class GoalWithProgressResponse(BaseModel):
    goal: GoalResponse
    progress: ProgressResponse


class GoalListResponse(BaseModel):
    goals: list[GoalWithProgressResponse]
    total: int
    page: int
    per_page: int


class GoalStatsResponse(BaseModel):
    total: int
    completed: int
    in_progress: int
    not_started: int
    overdue: int
    total_books_target: int
    total_books_read: int


class GoalCreditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reading_entry_id: int
    book_id: int
    applied_from_status: str | None = None
    created_at: datetime


class GoalCreditsResponse(BaseModel):
    credits: list[GoalCreditResponse]
