"""Signals emitted by the status machine and consumed by the goal engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CompletionEvent:
    """A reading entry entered the finished shelf."""

    reading_entry_id: int
    book_id: int
    reader_id: int
    finished_at: datetime
    from_status: str | None = None


@dataclass(frozen=True)
class UncompletionEvent:
    """A reading entry left the finished shelf (or a finished entry was deleted)."""

    reading_entry_id: int
