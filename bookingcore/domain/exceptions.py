"""
Domain-specific exception hierarchy for the booking core.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class ValidationError(BookingError, ValueError):
    """Raised when input is malformed or a required value is missing."""


class NotFoundError(BookingError):
    """Raised when a referenced appointment type, staff member or session does not exist."""


class ConflictError(BookingError):
    """Raised when a time slot was claimed by another booking before it could be written."""


class StoreError(BookingError):
    """Raised when the booking store is unreachable or returns an unexpected failure."""


class StoreTimeoutError(StoreError):
    """Raised when store reads do not finish within the caller's timeout."""


class NotificationError(BookingError):
    """Raised when a notification payload could not be delivered."""
