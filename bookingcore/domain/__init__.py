"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityCalculator, day_of_week
from .exceptions import (
    BookingError,
    ConflictError,
    NotFoundError,
    NotificationError,
    StoreError,
    StoreTimeoutError,
    ValidationError,
)
from .models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    AvailabilityRequest,
    BookedInterval,
    RecurrenceType,
    SessionInstance,
    SessionTemplate,
    TimeRange,
    TimeSlot,
    WorkingSchedule,
)
from .recurrence import expand_recurrence, validate_recurrence

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "AvailabilityCalculator",
    "AvailabilityRequest",
    "BookedInterval",
    "BookingError",
    "ConflictError",
    "NotFoundError",
    "NotificationError",
    "RecurrenceType",
    "SessionInstance",
    "SessionTemplate",
    "StoreError",
    "StoreTimeoutError",
    "TimeRange",
    "TimeSlot",
    "ValidationError",
    "WorkingSchedule",
    "day_of_week",
    "expand_recurrence",
    "validate_recurrence",
]
