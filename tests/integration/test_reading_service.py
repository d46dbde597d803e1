"""Tests for shelving books and moving them between statuses."""

import pytest
from sqlalchemy import func, select

from readtrack.db.models import Book
from readtrack.errors import (
    DuplicateEntryError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from readtrack.goals.updater import dispatch_event, on_book_completed
from readtrack.reading import repository, service
from readtrack.reading.events import CompletionEvent, UncompletionEvent
from readtrack.reading.status_machine import FINISHED, READING, TO_READ
from tests.factories import DAY, NOW, count_credits, finish_book, load_goal, make_goal


class TestAddBook:
    @pytest.mark.asyncio
    async def test_new_entry_records_initial_transition(self, session_factory):
        async with session_factory() as db:
            entry, event = await service.add_book(db, 1, "Dune", "Frank Herbert", page_count=412, now=NOW)
            history = await service.get_history(db, 1, entry.id)

        assert event is None
        assert entry.status == TO_READ
        assert entry.book.title == "Dune"
        assert [(t.from_status, t.to_status) for t in history] == [(None, TO_READ)]

    @pytest.mark.asyncio
    async def test_book_record_is_shared_between_readers(self, session_factory):
        async with session_factory() as db:
            first, _ = await service.add_book(db, 1, "Dune", "Frank Herbert", now=NOW)
            second, _ = await service.add_book(db, 2, "Dune", "Frank Herbert", now=NOW)
            books = await db.scalar(select(func.count()).select_from(Book))

        assert first.book_id == second.book_id
        assert books == 1

    @pytest.mark.asyncio
    async def test_duplicate_entry_rejected(self, session_factory):
        async with session_factory() as db:
            await service.add_book(db, 1, "Dune", "Frank Herbert", now=NOW)
            with pytest.raises(DuplicateEntryError):
                await service.add_book(db, 1, "  Dune ", "Frank Herbert", now=NOW)

    @pytest.mark.asyncio
    async def test_title_and_author_required(self, session_factory):
        async with session_factory() as db:
            with pytest.raises(ValidationError):
                await service.add_book(db, 1, " ", "Someone", now=NOW)

    @pytest.mark.asyncio
    async def test_unknown_status_rejected_before_insert(self, session_factory):
        async with session_factory() as db:
            with pytest.raises(ValidationError):
                await service.add_book(db, 1, "Dune", "Frank Herbert", status="done", now=NOW)
            books = await db.scalar(select(func.count()).select_from(Book))

        assert books == 0

    @pytest.mark.asyncio
    async def test_adding_finished_book_emits_completion(self, session_factory):
        async with session_factory() as db:
            entry, event = await service.add_book(
                db, 1, "Emma", "Jane Austen", page_count=300, status=FINISHED, now=NOW
            )

        assert isinstance(event, CompletionEvent)
        assert event.finished_at == NOW
        assert entry.finished_at == NOW
        assert entry.current_page == 300


class TestChangeStatus:
    @pytest.mark.asyncio
    async def test_invalid_transition_writes_nothing(self, session_factory):
        async with session_factory() as db:
            entry, _ = await service.add_book(db, 1, "Dune", "Frank Herbert", now=NOW)
            entry_id = entry.id

        async with session_factory() as db:
            with pytest.raises(InvalidTransitionError):
                await service.change_status(db, 1, entry_id, FINISHED, now=NOW)

        async with session_factory() as db:
            reloaded = await repository.get_entry(db, entry_id)
            history = await repository.list_status_transitions(db, entry_id)
        assert reloaded.status == TO_READ
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_history_is_newest_first(self, session_factory):
        async with session_factory() as db:
            entry, _ = await service.add_book(db, 1, "Dune", "Frank Herbert", now=NOW)
            await service.change_status(db, 1, entry.id, READING, now=NOW + DAY)
            await service.change_status(db, 1, entry.id, FINISHED, now=NOW + 2 * DAY)
            history = await service.get_history(db, 1, entry.id)

        assert [(t.from_status, t.to_status) for t in history] == [
            (READING, FINISHED),
            (TO_READ, READING),
            (None, TO_READ),
        ]

    @pytest.mark.asyncio
    async def test_unfinishing_clears_rating(self, session_factory):
        entry, _ = await finish_book(session_factory)
        async with session_factory() as db:
            await service.rate_entry(db, 1, entry.id, 5, "Loved it")
            updated, event = await service.change_status(db, 1, entry.id, READING, now=NOW)

        assert isinstance(event, UncompletionEvent)
        assert updated.rating is None
        assert updated.finished_at is None

    @pytest.mark.asyncio
    async def test_missing_and_foreign_entries(self, session_factory):
        entry, _ = await finish_book(session_factory, reader_id=1)
        async with session_factory() as db:
            with pytest.raises(NotFoundError):
                await service.change_status(db, 1, 9999, READING)
            with pytest.raises(UnauthorizedError):
                await service.change_status(db, 2, entry.id, READING)


class TestRatingAndProgress:
    @pytest.mark.asyncio
    async def test_rating_requires_finished(self, session_factory):
        async with session_factory() as db:
            entry, _ = await service.add_book(db, 1, "Dune", "Frank Herbert", now=NOW)
            with pytest.raises(ValidationError):
                await service.rate_entry(db, 1, entry.id, 4)

    @pytest.mark.asyncio
    async def test_page_progress_bounded_by_book(self, session_factory):
        async with session_factory() as db:
            entry, _ = await service.add_book(
                db, 1, "Dune", "Frank Herbert", page_count=412, status=READING, now=NOW
            )
            updated = await service.update_page_progress(db, 1, entry.id, 100)
            assert updated.current_page == 100
            with pytest.raises(ValidationError):
                await service.update_page_progress(db, 1, entry.id, 413)


class TestDelete:
    @pytest.mark.asyncio
    async def test_deleting_unfinished_entry_has_no_event(self, session_factory):
        async with session_factory() as db:
            entry, _ = await service.add_book(db, 1, "Dune", "Frank Herbert", now=NOW)
            assert await service.delete_entry(db, 1, entry.id) is None

    @pytest.mark.asyncio
    async def test_deleting_finished_entry_reverses_goal_credit(self, session_factory):
        goal = await make_goal(session_factory, target_count=1)
        entry, event = await finish_book(session_factory)
        await on_book_completed(session_factory, event, now=NOW)
        assert (await load_goal(session_factory, goal.id)).status == "completed"

        async with session_factory() as db:
            un_event = await service.delete_entry(db, 1, entry.id)
        report = await dispatch_event(session_factory, un_event, now=NOW)

        assert un_event == UncompletionEvent(reading_entry_id=entry.id)
        assert [g.id for g in report.updated] == [goal.id]
        reloaded = await load_goal(session_factory, goal.id)
        assert reloaded.progress_count == 0
        assert reloaded.status == "active"
        assert await count_credits(session_factory, goal.id) == 0
        async with session_factory() as db:
            assert await repository.get_entry(db, entry.id) is None

    @pytest.mark.asyncio
    async def test_cannot_delete_other_readers_entry(self, session_factory):
        entry, _ = await finish_book(session_factory, reader_id=1)
        async with session_factory() as db:
            with pytest.raises(UnauthorizedError):
                await service.delete_entry(db, 2, entry.id)
