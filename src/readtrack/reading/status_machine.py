"""Reading-status state machine.

State graph: to-read <-> reading <-> finished
Moving into or out of `finished` is what the goal engine cares about, so
those moves return a CompletionEvent / UncompletionEvent. Nothing here
touches goals or the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from readtrack.db.models import ReadingEntry
from readtrack.errors import InvalidTransitionError, ValidationError
from readtrack.reading.events import CompletionEvent, UncompletionEvent

TO_READ = "to-read"
READING = "reading"
FINISHED = "finished"

READING_STATUSES: tuple[str, ...] = (TO_READ, READING, FINISHED)

VALID_TRANSITIONS: dict[str, list[str]] = {
    TO_READ: [READING],
    READING: [TO_READ, FINISHED],
    FINISHED: [READING],
}

MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class TransitionRecord:
    """Literal from/to values for the append-only status history."""

    from_status: str | None
    to_status: str
    transitioned_at: datetime


@dataclass
class TransitionPlan:
    """Everything a status change implies, computed before anything is written."""

    updated_fields: dict[str, Any]
    record: TransitionRecord
    event: CompletionEvent | UncompletionEvent | None = None


def can_transition(current_status: str, target_status: str) -> bool:
    """True if the status graph has an edge current -> target."""
    return target_status in VALID_TRANSITIONS.get(current_status, [])


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises InvalidTransitionError if invalid."""
    if target_status not in READING_STATUSES:
        raise ValidationError(f"Unknown reading status: {target_status}")
    if not can_transition(current_status, target_status):
        raise InvalidTransitionError(
            current_status, target_status, VALID_TRANSITIONS.get(current_status, [])
        )


def _finish_fields(
    entry: ReadingEntry,
    page_count: int | None,
    now: datetime,
) -> tuple[dict[str, Any], datetime]:
    updates: dict[str, Any] = {"status": FINISHED}
    finished_at = entry.finished_at
    if finished_at is None:
        finished_at = now
        updates["finished_at"] = finished_at
    if page_count:
        updates["current_page"] = page_count
    return updates, finished_at


def plan_transition(
    entry: ReadingEntry,
    target_status: str,
    *,
    page_count: int | None = None,
    now: datetime | None = None,
) -> TransitionPlan:
    """Compute the field updates, history record and goal event for a status change.

    - entering finished: finished_at is set only if missing, current_page
      jumps to page_count when known, CompletionEvent emitted
    - leaving finished: finished_at and rating cleared, UncompletionEvent emitted
    - entering to-read: current_page reset to 0
    """
    validate_transition(entry.status, target_status)
    if now is None:
        now = datetime.now(timezone.utc)

    event: CompletionEvent | UncompletionEvent | None = None

    if target_status == FINISHED:
        updates, finished_at = _finish_fields(entry, page_count, now)
        event = CompletionEvent(
            reading_entry_id=entry.id,
            book_id=entry.book_id,
            reader_id=entry.reader_id,
            finished_at=finished_at,
            from_status=entry.status,
        )
    else:
        updates = {"status": target_status}
        if entry.status == FINISHED:
            updates["finished_at"] = None
            updates["rating"] = None
            event = UncompletionEvent(reading_entry_id=entry.id)
        if target_status == TO_READ:
            updates["current_page"] = 0

    record = TransitionRecord(
        from_status=entry.status,
        to_status=target_status,
        transitioned_at=now,
    )
    return TransitionPlan(updated_fields=updates, record=record, event=event)


def plan_initial(
    entry: ReadingEntry,
    *,
    page_count: int | None = None,
    now: datetime | None = None,
) -> TransitionPlan:
    """Plan the first history record of a brand-new entry (from_status is None).

    An entry added straight onto the finished shelf gets the same side
    effects as finishing it, including the CompletionEvent. The caller must
    have flushed the entry so that entry.id is assigned.
    """
    if entry.status not in READING_STATUSES:
        raise ValidationError(f"Unknown reading status: {entry.status}")
    if now is None:
        now = datetime.now(timezone.utc)

    event: CompletionEvent | None = None
    updates: dict[str, Any] = {"status": entry.status}
    if entry.status == FINISHED:
        updates, finished_at = _finish_fields(entry, page_count, now)
        event = CompletionEvent(
            reading_entry_id=entry.id,
            book_id=entry.book_id,
            reader_id=entry.reader_id,
            finished_at=finished_at,
        )

    record = TransitionRecord(from_status=None, to_status=entry.status, transitioned_at=now)
    return TransitionPlan(updated_fields=updates, record=record, event=event)


def validate_rating(status: str, rating: int | None) -> None:
    """Only finished entries carry a rating, and it must be 1-5."""
    if rating is None:
        return
    if status != FINISHED:
        raise ValidationError("Only finished books can be rated")
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")


def validate_page_progress(current_page: int, page_count: int | None) -> None:
    """Page progress must be non-negative and within the book."""
    if current_page < 0:
        raise ValidationError("Current page cannot be negative")
    if page_count and current_page > page_count:
        raise ValidationError(
            f"Current page ({current_page}) cannot exceed total pages ({page_count})"
        )
