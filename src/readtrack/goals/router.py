"""Reading goal endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack.auth.dependencies import get_current_reader_id
from readtrack.config import get_settings
from readtrack.database import get_session, get_session_factory
from readtrack.db.models import ReadingGoal
from readtrack.goals import repository, service
from readtrack.goals.progress import ProgressSnapshot
from readtrack.goals.reconciler import get_progress_snapshot, sync_goal_progress, update_goal_progress
from readtrack.goals.schemas import (
    GoalCreateRequest,
    GoalCreditResponse,
    GoalCreditsResponse,
    GoalListResponse,
    GoalResponse,
    GoalStatsResponse,
    GoalUpdateRequest,
    GoalWithProgressResponse,
    ProgressOverrideRequest,
    ProgressResponse,
)

router = APIRouter(prefix="/api/v1/goals", tags=["Goals"])


def _with_progress(goal: ReadingGoal, snapshot: ProgressSnapshot | None = None) -> GoalWithProgressResponse:
    if snapshot is None:
        snapshot = get_progress_snapshot(goal)
    return GoalWithProgressResponse(
        goal=GoalResponse.model_validate(goal),
        progress=ProgressResponse(**snapshot.to_dict()),
    )


@router.post("", response_model=GoalWithProgressResponse, status_code=201)
async def create_goal(
    body: GoalCreateRequest,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> GoalWithProgressResponse:
    goal = await service.create_goal(
        db,
        user_id=reader_id,
        name=body.name,
        target_count=body.target_count,
        days_to_complete=body.days_to_complete,
        timezone_name=body.timezone,
    )
    return _with_progress(goal)


@router.get("", response_model=GoalListResponse)
async def list_goals(
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1, le=100),
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> GoalListResponse:
    """Reader's goals: active first, then completed, then expired."""
    if per_page is None:
        per_page = get_settings().goals_page_size
    rows, total = await service.list_goals_with_progress(
        db, reader_id, status=status, page=page, page_size=per_page
    )
    return GoalListResponse(
        goals=[_with_progress(goal, snapshot) for goal, snapshot in rows],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/stats", response_model=GoalStatsResponse)
async def goal_stats(
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> GoalStatsResponse:
    stats = await service.goal_statistics(db, reader_id)
    return GoalStatsResponse(**vars(stats))


@router.get("/{goal_id}", response_model=GoalWithProgressResponse)
async def get_goal(
    goal_id: int,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> GoalWithProgressResponse:
    goal = await service.get_owned_goal(db, goal_id, reader_id)
    return _with_progress(goal)


@router.patch("/{goal_id}", response_model=GoalWithProgressResponse)
async def edit_goal(
    goal_id: int,
    body: GoalUpdateRequest,
    reader_id: int = Depends(get_current_reader_id),
) -> GoalWithProgressResponse:
    """Edit an active goal: new target and/or extra days before the deadline."""
    goal = await service.update_goal(
        get_session_factory(),
        goal_id,
        reader_id,
        target_count=body.target_count,
        days_to_add=body.days_to_add,
    )
    return _with_progress(goal)


@router.delete("/{goal_id}", status_code=204)
async def delete_goal(
    goal_id: int,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete a goal and its credit rows."""
    await service.delete_goal(db, goal_id, reader_id)


@router.get("/{goal_id}/credits", response_model=GoalCreditsResponse)
async def list_goal_credits(
    goal_id: int,
    reader_id: int = Depends(get_current_reader_id),
    db: AsyncSession = Depends(get_session),
) -> GoalCreditsResponse:
    """Reading entries that were credited to this goal by completion events."""
    await service.get_owned_goal(db, goal_id, reader_id)
    rows = await repository.find_progress_by_goal(db, goal_id)
    return GoalCreditsResponse(credits=[GoalCreditResponse.model_validate(row) for row in rows])


@router.post("/{goal_id}/sync", response_model=GoalWithProgressResponse)
async def sync_goal(
    goal_id: int,
    reader_id: int = Depends(get_current_reader_id),
) -> GoalWithProgressResponse:
    """Recount the goal from reading history and converge its status."""
    goal = await sync_goal_progress(get_session_factory(), goal_id, reader_id)
    return _with_progress(goal)


@router.put("/{goal_id}/progress", response_model=GoalWithProgressResponse)
async def override_progress(
    goal_id: int,
    body: ProgressOverrideRequest,
    reader_id: int = Depends(get_current_reader_id),
) -> GoalWithProgressResponse:
    goal = await update_goal_progress(get_session_factory(), goal_id, reader_id, body.progress_count)
    return _with_progress(goal)
