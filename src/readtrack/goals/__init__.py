"""Goal-progress engine.

The names below are what the reading side and the HTTP layer call into.
"""

from readtrack.goals.reconciler import get_progress_snapshot, sync_goal_progress, update_goal_progress
from readtrack.goals.updater import dispatch_event, on_book_completed, on_book_uncompleted

__all__ = [
    "dispatch_event",
    "get_progress_snapshot",
    "on_book_completed",
    "on_book_uncompleted",
    "sync_goal_progress",
    "update_goal_progress",
]
