"""Reading entry operations: add, change status, rate, track pages, delete.

Each operation commits its own transaction and returns the goal event the
change implies (or None). Handing that event to the goal engine is the
caller's job, after this commit, so a goal failure can never undo a
status change.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from readtrack.db.models import ReadingEntry, StatusTransition
from readtrack.errors import DuplicateEntryError, NotFoundError, UnauthorizedError, ValidationError
from readtrack.reading import repository
from readtrack.reading.events import CompletionEvent, UncompletionEvent
from readtrack.reading.status_machine import (
    FINISHED,
    READING_STATUSES,
    TO_READ,
    TransitionPlan,
    plan_initial,
    plan_transition,
    validate_page_progress,
    validate_rating,
)

logger = logging.getLogger(__name__)

ReadingEvent = CompletionEvent | UncompletionEvent


def _apply(entry: ReadingEntry, plan: TransitionPlan, now: datetime) -> None:
    for name, value in plan.updated_fields.items():
        setattr(entry, name, value)
    entry.updated_at = now


async def get_owned_entry(db: AsyncSession, reader_id: int, entry_id: int) -> ReadingEntry:
    entry = await repository.get_entry(db, entry_id)
    if entry is None:
        raise NotFoundError("Reading entry", entry_id)
    if entry.reader_id != reader_id:
        raise UnauthorizedError("Access denied to this reading entry")
    return entry


async def add_book(
    db: AsyncSession,
    reader_id: int,
    title: str,
    author: str,
    *,
    page_count: int | None = None,
    status: str = TO_READ,
    reflection_note: str | None = None,
    now: datetime | None = None,
) -> tuple[ReadingEntry, CompletionEvent | None]:
    """Put a book on the reader's shelf, creating the book record if needed."""
    title = (title or "").strip()
    author = (author or "").strip()
    if not title or not author:
        raise ValidationError("Title and author are required")
    if page_count is not None and page_count <= 0:
        raise ValidationError("Page count must be a positive integer")
    if status not in READING_STATUSES:
        raise ValidationError(f"Unknown reading status: {status}")
    if now is None:
        now = datetime.now(timezone.utc)

    book = await repository.find_book(db, title, author)
    if book is None:
        book = await repository.create_book(db, title, author, page_count)
    elif await repository.get_entry_by_reader_and_book(db, reader_id, book.id) is not None:
        raise DuplicateEntryError(f'Book "{title}" by {author} already exists in your library')

    entry = await repository.create_entry(db, reader_id, book.id, status, reflection_note)
    entry.book = book
    plan = plan_initial(entry, page_count=book.page_count, now=now)
    _apply(entry, plan, now)
    await repository.add_status_transition(db, entry.id, plan.record)
    await db.commit()

    logger.info("Reader %s added book %s as %s (entry %s)", reader_id, book.id, status, entry.id)
    return entry, plan.event


async def change_status(
    db: AsyncSession,
    reader_id: int,
    entry_id: int,
    target_status: str,
    now: datetime | None = None,
) -> tuple[ReadingEntry, ReadingEvent | None]:
    """Move an entry along the status graph and record the transition.

    An invalid move raises before anything is written.
    """
    entry = await get_owned_entry(db, reader_id, entry_id)
    if now is None:
        now = datetime.now(timezone.utc)

    plan = plan_transition(entry, target_status, page_count=entry.book.page_count, now=now)
    _apply(entry, plan, now)
    await repository.add_status_transition(db, entry.id, plan.record)
    await db.commit()

    logger.info("Entry %s moved %s -> %s", entry.id, plan.record.from_status, plan.record.to_status)
    return entry, plan.event


async def rate_entry(
    db: AsyncSession,
    reader_id: int,
    entry_id: int,
    rating: int | None,
    reflection_note: str | None = None,
) -> ReadingEntry:
    entry = await get_owned_entry(db, reader_id, entry_id)
    validate_rating(entry.status, rating)
    entry.rating = rating
    if reflection_note is not None:
        entry.reflection_note = reflection_note
    entry.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return entry


async def update_page_progress(
    db: AsyncSession,
    reader_id: int,
    entry_id: int,
    current_page: int,
) -> ReadingEntry:
    entry = await get_owned_entry(db, reader_id, entry_id)
    validate_page_progress(current_page, entry.book.page_count)
    entry.current_page = current_page
    entry.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return entry


async def delete_entry(
    db: AsyncSession,
    reader_id: int,
    entry_id: int,
) -> UncompletionEvent | None:
    """Remove an entry from the shelf; a finished entry must be reversed on goals."""
    entry = await get_owned_entry(db, reader_id, entry_id)
    event = UncompletionEvent(reading_entry_id=entry.id) if entry.status == FINISHED else None
    await db.delete(entry)
    await db.commit()
    logger.info("Reader %s deleted entry %s", reader_id, entry_id)
    return event


async def get_history(db: AsyncSession, reader_id: int, entry_id: int) -> list[StatusTransition]:
    await get_owned_entry(db, reader_id, entry_id)
    return await repository.list_status_transitions(db, entry_id)
