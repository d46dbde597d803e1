"""ORM models for books, reading entries and reading goals.

The schema itself is owned by Alembic (see alembic/versions). Status
columns hold plain strings; the allowed values live next to the logic
that moves between them (reading.status_machine, goals.progress).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from readtrack.db.base import Base, BigIntId, UTCDateTime

# ---------------------------------------------------------------------------
# Books & reading entries
# ---------------------------------------------------------------------------


class Book(Base):
    """Maps to the 'books' table."""

    __tablename__ = "books"
    __table_args__ = (
        UniqueConstraint("title", "author", name="books_title_author_key"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class ReadingEntry(Base):
    """One reader's copy of a book on their shelf; unique per (reader_id, book_id)."""

    __tablename__ = "reading_entries"
    __table_args__ = (
        UniqueConstraint("reader_id", "book_id", name="reading_entries_reader_id_book_id_key"),
        CheckConstraint("status IN ('to-read', 'reading', 'finished')", name="chk_reading_entries_status"),
        CheckConstraint("rating IS NULL OR (rating BETWEEN 1 AND 5)", name="chk_reading_entries_rating"),
        Index("idx_reading_entries_reader_finished", "reader_id", "status", "finished_at"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    reader_id: Mapped[int] = mapped_column(BigIntId, nullable=False)
    book_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    rating: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    reflection_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    current_page: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    book: Mapped[Book] = relationship("Book", lazy="joined")


class StatusTransition(Base):
    """Append-only status history for a reading entry."""

    __tablename__ = "status_transitions"
    __table_args__ = (
        Index("idx_status_transitions_entry", "reading_entry_id", "transitioned_at"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    reading_entry_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("reading_entries.id", ondelete="CASCADE"), nullable=False
    )
    from_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    to_status: Mapped[str] = mapped_column(String(16), nullable=False)
    transitioned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Reading goals
# ---------------------------------------------------------------------------


class ReadingGoal(Base):
    """Time-boxed reading goal with denormalized progress counters.

    `version` is the optimistic-concurrency row version: every UPDATE is
    issued as `... WHERE id = :id AND version = :old` and bumps it.
    """

    __tablename__ = "reading_goals"
    __table_args__ = (
        CheckConstraint("target_count > 0 AND target_count <= 9999", name="chk_reading_goals_target"),
        CheckConstraint("progress_count >= 0", name="chk_reading_goals_progress"),
        CheckConstraint("bonus_count >= 0", name="chk_reading_goals_bonus"),
        CheckConstraint("status IN ('active', 'completed', 'expired')", name="chk_reading_goals_status"),
        CheckConstraint(
            "(status = 'completed' AND completed_at IS NOT NULL) OR "
            "(status != 'completed' AND completed_at IS NULL)",
            name="chk_reading_goals_completed_at",
        ),
        Index("idx_reading_goals_user_status", "user_id", "status"),
        Index("idx_reading_goals_status_deadline", "status", "deadline_at_utc"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigIntId, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    target_count: Mapped[int] = mapped_column(Integer, nullable=False)
    progress_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bonus_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    deadline_at_utc: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    deadline_timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


class GoalProgressEntry(Base):
    """Audit row: one per (goal, reading entry) credited by the incremental path."""

    __tablename__ = "reading_goal_progress"
    __table_args__ = (
        UniqueConstraint("goal_id", "reading_entry_id", name="reading_goal_progress_goal_id_entry_id_key"),
        Index("idx_reading_goal_progress_entry", "reading_entry_id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    goal_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("reading_goals.id", ondelete="CASCADE"), nullable=False
    )
    # No FK to reading_entries: rows must outlive a deleted entry until the
    # uncompletion event for that entry has been applied.
    reading_entry_id: Mapped[int] = mapped_column(BigIntId, nullable=False)
    book_id: Mapped[int] = mapped_column(BigIntId, nullable=False)
    applied_from_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
