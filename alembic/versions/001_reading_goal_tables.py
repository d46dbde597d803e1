"""Reading entries, status history and reading goals.

Creates books, reading_entries, status_transitions, reading_goals and
reading_goal_progress. reading_goal_progress deliberately has no foreign
key to reading_entries: a row has to survive the entry's deletion until
the uncompletion for that entry has been applied to the goal.

Revision ID: 001_reading_goal_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_reading_goal_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Books ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS books (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(500) NOT NULL,
            author VARCHAR(255) NOT NULL,
            page_count INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT books_title_author_key UNIQUE (title, author)
        )
    """)

    # --- Reading entries ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reading_entries (
            id BIGSERIAL PRIMARY KEY,
            reader_id BIGINT NOT NULL,
            book_id BIGINT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL,
            rating SMALLINT,
            reflection_note TEXT,
            finished_at TIMESTAMPTZ,
            current_page INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT reading_entries_reader_id_book_id_key UNIQUE (reader_id, book_id),
            CONSTRAINT chk_reading_entries_status CHECK (status IN ('to-read', 'reading', 'finished')),
            CONSTRAINT chk_reading_entries_rating CHECK (rating IS NULL OR (rating BETWEEN 1 AND 5))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_reading_entries_reader_finished
        ON reading_entries(reader_id, status, finished_at)
    """)

    # --- Status history ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS status_transitions (
            id BIGSERIAL PRIMARY KEY,
            reading_entry_id BIGINT NOT NULL REFERENCES reading_entries(id) ON DELETE CASCADE,
            from_status VARCHAR(16),
            to_status VARCHAR(16) NOT NULL,
            transitioned_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_status_transitions_entry
        ON status_transitions(reading_entry_id, transitioned_at)
    """)

    # --- Reading goals ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reading_goals (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            name VARCHAR(255) NOT NULL,
            target_count INTEGER NOT NULL,
            progress_count INTEGER NOT NULL DEFAULT 0,
            bonus_count INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            starts_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deadline_at_utc TIMESTAMPTZ NOT NULL,
            deadline_timezone VARCHAR(64) NOT NULL,
            completed_at TIMESTAMPTZ,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT chk_reading_goals_target CHECK (target_count > 0 AND target_count <= 9999),
            CONSTRAINT chk_reading_goals_progress CHECK (progress_count >= 0),
            CONSTRAINT chk_reading_goals_bonus CHECK (bonus_count >= 0),
            CONSTRAINT chk_reading_goals_status CHECK (status IN ('active', 'completed', 'expired')),
            CONSTRAINT chk_reading_goals_completed_at CHECK (
                (status = 'completed' AND completed_at IS NOT NULL)
                OR (status != 'completed' AND completed_at IS NULL)
            )
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_reading_goals_user_status
        ON reading_goals(user_id, status)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_reading_goals_status_deadline
        ON reading_goals(status, deadline_at_utc)
    """)

    # --- Goal credit audit ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reading_goal_progress (
            id BIGSERIAL PRIMARY KEY,
            goal_id BIGINT NOT NULL REFERENCES reading_goals(id) ON DELETE CASCADE,
            reading_entry_id BIGINT NOT NULL,
            book_id BIGINT NOT NULL,
            applied_from_status VARCHAR(16),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT reading_goal_progress_goal_id_entry_id_key UNIQUE (goal_id, reading_entry_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_reading_goal_progress_entry
        ON reading_goal_progress(reading_entry_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS reading_goal_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS reading_goals CASCADE")
    op.execute("DROP TABLE IF EXISTS status_transitions CASCADE")
    op.execute("DROP TABLE IF EXISTS reading_entries CASCADE")
    op.execute("DROP TABLE IF EXISTS books CASCADE")
