"""Persistence for books, reading entries and status history."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack.db.models import Book, ReadingEntry, StatusTransition
from readtrack.reading.status_machine import FINISHED, TransitionRecord


async def get_book(db: AsyncSession, book_id: int) -> Book | None:
    result = await db.execute(select(Book).where(Book.id == book_id))
    return result.scalar_one_or_none()


async def find_book(db: AsyncSession, title: str, author: str) -> Book | None:
    result = await db.execute(
        select(Book).where(Book.title == title, Book.author == author)
    )
    return result.scalar_one_or_none()


async def create_book(
    db: AsyncSession,
    title: str,
    author: str,
    page_count: int | None = None,
) -> Book:
    book = Book(
        title=title,
        author=author,
        page_count=page_count,
        created_at=datetime.now(timezone.utc),
    )
    db.add(book)
    await db.flush()
    return book


async def get_entry(db: AsyncSession, entry_id: int) -> ReadingEntry | None:
    result = await db.execute(select(ReadingEntry).where(ReadingEntry.id == entry_id))
    return result.scalar_one_or_none()


async def get_entry_by_reader_and_book(
    db: AsyncSession, reader_id: int, book_id: int
) -> ReadingEntry | None:
    result = await db.execute(
        select(ReadingEntry).where(
            ReadingEntry.reader_id == reader_id,
            ReadingEntry.book_id == book_id,
        )
    )
    return result.scalar_one_or_none()


async def create_entry(
    db: AsyncSession,
    reader_id: int,
    book_id: int,
    status: str,
    reflection_note: str | None = None,
) -> ReadingEntry:
    now = datetime.now(timezone.utc)
    entry = ReadingEntry(
        reader_id=reader_id,
        book_id=book_id,
        status=status,
        reflection_note=reflection_note,
        current_page=0,
        created_at=now,
        updated_at=now,
    )
    db.add(entry)
    await db.flush()
    return entry


async def list_entries(
    db: AsyncSession,
    reader_id: int,
    status: str | None = None,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[ReadingEntry], int]:
    """Return one page of a reader's entries (newest first) and the total count."""
    filters = [ReadingEntry.reader_id == reader_id]
    if status is not None:
        filters.append(ReadingEntry.status == status)

    total = await db.scalar(select(func.count()).select_from(ReadingEntry).where(*filters))
    result = await db.execute(
        select(ReadingEntry)
        .where(*filters)
        .order_by(ReadingEntry.updated_at.desc(), ReadingEntry.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().unique()), int(total or 0)


async def find_finished_entries_in_window(
    db: AsyncSession,
    reader_id: int,
    window_start: datetime,
    window_end: datetime,
) -> list[ReadingEntry]:
    """Finished entries whose finished_at falls in [window_start, window_end]."""
    result = await db.execute(
        select(ReadingEntry).where(
            ReadingEntry.reader_id == reader_id,
            ReadingEntry.status == FINISHED,
            ReadingEntry.finished_at.is_not(None),
            ReadingEntry.finished_at >= window_start,
            ReadingEntry.finished_at <= window_end,
        )
    )
    return list(result.scalars().unique())


async def add_status_transition(
    db: AsyncSession,
    reading_entry_id: int,
    record: TransitionRecord,
) -> StatusTransition:
    row = StatusTransition(
        reading_entry_id=reading_entry_id,
        from_status=record.from_status,
        to_status=record.to_status,
        transitioned_at=record.transitioned_at,
    )
    db.add(row)
    await db.flush()
    return row


async def list_status_transitions(db: AsyncSession, reading_entry_id: int) -> list[StatusTransition]:
    """Status history for an entry, newest first."""
    result = await db.execute(
        select(StatusTransition)
        .where(StatusTransition.reading_entry_id == reading_entry_id)
        .order_by(StatusTransition.transitioned_at.desc(), StatusTransition.id.desc())
    )
    return list(result.scalars())
