"""
Typed failures raised by the progress engine and its persistence gateway.
The HTTP adapter maps error_code to a status; nothing here knows about HTTP.
"""

from typing import Optional


class ProgressError(Exception):
    """Base exception for the progress & rewards engine"""

    error_code: str = "PROGRESS_ERROR"
    retriable: bool = False

    def __init__(self, detail: str, error_code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        if error_code:
            self.error_code = error_code


class NotFound(ProgressError):
    """Record missing or owned by someone else"""

    error_code = "NOT_FOUND"


class InvalidInput(ProgressError):
    """Rejected before any mutation is attempted"""

    error_code = "INVALID_INPUT"


class ConstraintViolation(ProgressError):
    """Integrity error the engine has no idempotent meaning for"""

    error_code = "CONSTRAINT_VIOLATION"


class PersistenceUnavailable(ProgressError):
    """Storage I/O failure or exhausted optimistic retries; safe to retry"""

    error_code = "PERSISTENCE_UNAVAILABLE"
    retriable = True


class CompletionExists(ProgressError):
    """
    Raised by the gateway when the (habit, day) unique constraint fires.
    The engine turns it into an already-completed result, never surfaces it.
    """

    error_code = "ALREADY_COMPLETED"

    def __init__(self, habit_id: int, day):
        super().__init__(f"Habit {habit_id} already completed on {day}")
        self.habit_id = habit_id
        self.day = day
