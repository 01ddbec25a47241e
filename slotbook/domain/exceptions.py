"""
Domain-specific exception hierarchy for the slotbook application.
"""

from typing import List, Sequence


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class ValidationError(SchedulingError):
    """Raised when caller input is missing or malformed."""


class InvalidDateRangeError(ValidationError):
    """Raised when a date range bound is missing or cannot be parsed."""


class NotFoundError(SchedulingError):
    """Raised when an employee or assignment does not exist."""


class AssignmentConflictError(SchedulingError):
    """Raised when a booking overlaps an existing scheduled assignment."""

    def __init__(self, message: str, conflicts: Sequence = ()) -> None:
        super().__init__(message)
        self.conflicts: List = list(conflicts)


class StorageError(SchedulingError):
    """Raised when the backing data file cannot be read or written."""


class DuplicateEmployeeError(SchedulingError):
    """Raised when another employee already uses the given email address."""
