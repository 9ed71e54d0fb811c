"""Scheduling error taxonomy.

Every failure that crosses the engine boundary is one of these; nothing
from the storage layer reaches callers directly.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for all scheduling errors."""
    
    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(SchedulingError):
    """Malformed input (bad window, missing time fields, past datetime)."""


class NotFoundError(SchedulingError):
    """A referenced provider, service, location, member or booking does not exist."""


class SlotUnavailable(SchedulingError):
    """The requested window is not free at commit time.
    
    Callers should re-fetch slots and pick another one.
    """


class ConflictError(SchedulingError):
    """A store-level write conflict, such as a unique-index violation."""


class InvalidTransition(ConflictError):
    """An illegal booking status change."""


class TransientStoreError(SchedulingError):
    """A store operation failed for a reason that may go away on retry."""
