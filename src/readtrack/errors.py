"""Domain errors raised by the reading and goal services.

The HTTP layer maps each class to a status code in
readtrack.middleware.error_handler; services never raise HTTPException.
"""

from __future__ import annotations


class ReadTrackError(Exception):
    """Base class for all domain errors."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ReadTrackError):
    """A goal, reading entry or book id does not resolve."""

    status_code = 404

    def __init__(self, resource: str, resource_id: object) -> None:
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class UnauthorizedError(ReadTrackError):
    """The requesting reader does not own the resource."""

    status_code = 403


class InvalidTransitionError(ReadTrackError):
    """Reading-status change not allowed by the status graph."""

    status_code = 409

    def __init__(self, current_status: str, target_status: str, valid: list[str]) -> None:
        super().__init__(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )
        self.current_status = current_status
        self.target_status = target_status


class ValidationError(ReadTrackError):
    """Input rejected at the service boundary."""

    status_code = 422


class DuplicateEntryError(ValidationError):
    """The reader already has this book on their shelf."""

    status_code = 409


class ConflictError(ReadTrackError):
    """Concurrent writers kept colliding on a goal row; safe to retry later."""

    status_code = 409

    def __init__(self, goal_id: int, attempts: int) -> None:
        super().__init__(f"Goal {goal_id} update conflicted {attempts} times")
        self.goal_id = goal_id
        self.attempts = attempts
