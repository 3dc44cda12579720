"""
Service layer helpers that orchestrate the store adapters and domain logic.
"""

from .appointment_booking import AppointmentBookingRequest, AppointmentBookingService
from .availability_service import AvailabilityReport, AvailabilityService
from .session_series import SessionSeries, SessionSeriesService
from .store import AvailabilityStore, BookingStore, Notifier

__all__ = [
    "AppointmentBookingRequest",
    "AppointmentBookingService",
    "AvailabilityReport",
    "AvailabilityService",
    "AvailabilityStore",
    "BookingStore",
    "Notifier",
    "SessionSeries",
    "SessionSeriesService",
]
