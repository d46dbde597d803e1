"""Reading entry endpoints.

Mutations commit the entry first, then hand the resulting event to the
goal updater; per-goal failures come back in the response instead of
failing the request.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack.auth.dependencies import get_current_reader_id
from readtrack.database import get_session, get_session_factory
from readtrack.errors import ValidationError
from readtrack.goals.updater import GoalUpdateReport, dispatch_event
from readtrack.reading import repository, service
from readtrack.reading.schemas import (
    GoalEffectResponse,
    GoalUpdateFailureResponse,
    PageProgressRequest,
    RatingRequest,
    ReadingEntryChangeResponse,
    ReadingEntryCreateRequest,
    ReadingEntryDeleteResponse,
    ReadingEntryListResponse,
    ReadingEntryResponse,
    StatusChangeRequest,
    StatusTransitionListResponse,
    StatusTransitionResponse,
)
from readtrack.reading.status_machine import READING_STATUSES

router = APIRouter(prefix="/api/v1/reading-entries", tags=["Reading"])


def _goal_effect(report: GoalUpdateReport) -> GoalEffectResponse:
    return GoalEffectResponse(
        updated_goal_ids=[goal.id for goal in report.updated],
        skipped_goal_ids=report.skipped,
        failures=[GoalUpdateFailureResponse(goal_id=f.goal_id, error=f.error) for f in report.failures],
    )


@router.post("", response_model=ReadingEntryChangeResponse, status_code=201)
async def add_entry(
    body: ReadingEntryCreateRequest,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> ReadingEntryChangeResponse:
    entry, event = await service.add_book(
        db,
        reader_id,
        body.title,
        body.author,
        page_count=body.page_count,
        status=body.status,
        reflection_note=body.reflection_note,
    )
    report = await dispatch_event(get_session_factory(), event)
    return ReadingEntryChangeResponse(
        entry=ReadingEntryResponse.model_validate(entry),
        goals=_goal_effect(report),
    )


@router.get("", response_model=ReadingEntryListResponse)
async def list_entries(
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> ReadingEntryListResponse:
    if status is not None and status not in READING_STATUSES:
        raise ValidationError(f"Unknown reading status: {status}")
    entries, total = await repository.list_entries(db, reader_id, status=status, page=page, page_size=per_page)
    return ReadingEntryListResponse(
        entries=[ReadingEntryResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/{entry_id}", response_model=ReadingEntryResponse)
async def get_entry(
    entry_id: int,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> ReadingEntryResponse:
    entry = await service.get_owned_entry(db, reader_id, entry_id)
    return ReadingEntryResponse.model_validate(entry)


@router.patch("/{entry_id}/status", response_model=ReadingEntryChangeResponse)
async def change_status(
    entry_id: int,
    body: StatusChangeRequest,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> ReadingEntryChangeResponse:
    entry, event = await service.change_status(db, reader_id, entry_id, body.status)
    report = await dispatch_event(get_session_factory(), event)
    return ReadingEntryChangeResponse(
        entry=ReadingEntryResponse.model_validate(entry),
        goals=_goal_effect(report),
    )


@router.put("/{entry_id}/rating", response_model=ReadingEntryResponse)
async def rate_entry(
    entry_id: int,
    body: RatingRequest,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> ReadingEntryResponse:
    entry = await service.rate_entry(db, reader_id, entry_id, body.rating, body.reflection_note)
    return ReadingEntryResponse.model_validate(entry)


@router.put("/{entry_id}/progress", response_model=ReadingEntryResponse)
async def update_page_progress(
    entry_id: int,
    body: PageProgressRequest,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> ReadingEntryResponse:
    entry = await service.update_page_progress(db, reader_id, entry_id, body.current_page)
    return ReadingEntryResponse.model_validate(entry)


@router.delete("/{entry_id}", response_model=ReadingEntryDeleteResponse)
async def delete_entry(
    entry_id: int,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> ReadingEntryDeleteResponse:
    event = await service.delete_entry(db, reader_id, entry_id)
    report = await dispatch_event(get_session_factory(), event)
    return ReadingEntryDeleteResponse(goals=_goal_effect(report))


@router.get("/{entry_id}/transitions", response_model=StatusTransitionListResponse)
async def list_transitions(
    entry_id: int,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> StatusTransitionListResponse:
    rows = await service.get_history(db, reader_id, entry_id)
    return StatusTransitionListResponse(
        transitions=[StatusTransitionResponse.model_validate(row) for row in rows]
    )
