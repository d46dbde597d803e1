"""Pydantic request/response models for reading-entry endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from readtrack.reading.status_machine import TO_READ


class ReadingEntryCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    author: str = Field(min_length=1, max_length=255)
    page_count: int | None = Field(default=None, gt=0)
    status: str = TO_READ
    reflection_note: str | None = None


class StatusChangeRequest(BaseModel):
    status: str


class RatingRequest(BaseModel):
    rating: int | None = None
    reflection_note: str | None = None


class PageProgressRequest(BaseModel):
    current_page: int


class BookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    author: str
    page_count: int | None = None


class ReadingEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    book: BookResponse
    status: str
    rating: int | None = None
    reflection_note: str | None = None
    current_page: int
    finished_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class GoalUpdateFailureResponse(BaseModel):
    goal_id: int
    error: str


class GoalEffectResponse(BaseModel):
    """What the status change did to the reader's goals."""

    updated_goal_ids: list[int] = []
    skipped_goal_ids: list[int] = []
    failures: list[GoalUpdateFailureResponse] = []


class ReadingEntryChangeResponse(BaseModel):
    entry: ReadingEntryResponse
    goals: GoalEffectResponse


class ReadingEntryDeleteResponse(BaseModel):
    deleted: bool = True
    goals: GoalEffectResponse


class ReadingEntryListResponse(BaseModel):
    entries: list[ReadingEntryResponse]
    total: int
    page: int
    per_page: int


class StatusTransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: str | None = None
    to_status: str
    transitioned_at: datetime


class StatusTransitionListResponse(BaseModel):
    transitions: list[StatusTransitionResponse]
