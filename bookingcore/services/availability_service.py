"""
Application service for answering availability queries.

The service fetches schedules, bookings and the appointment type through the
store protocols and delegates the slot computation to the domain-level
``AvailabilityCalculator``. The result is a snapshot: nothing is reserved,
so booking creation must re-check for overlaps at write time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, Tuple

import pendulum

from ..domain.availability import AvailabilityCalculator, day_of_week
from ..domain.exceptions import NotFoundError, ValidationError
from ..domain.models import (
    AppointmentType,
    AvailabilityRequest,
    BookedInterval,
    TimeSlot,
    WorkingSchedule,
)
from .store import AppointmentTypeReader, AvailabilityStore, with_timeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityReport:
    """Slots for one request plus the counts shown to patients."""
    date: date
    appointment_type_id: str
    slots: List[TimeSlot]

    @property
    def total_slots(self) -> int:
        return len(self.slots)

    @property
    def available_slots(self) -> int:
        return sum(1 for slot in self.slots if slot.available)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "appointment_type_id": self.appointment_type_id,
            "total_slots": self.total_slots,
            "available_slots": self.available_slots,
            "time_slots": [slot.to_dict() for slot in self.slots],
        }


async def get_active_appointment_type(
    store: AppointmentTypeReader, appointment_type_id: str
) -> AppointmentType:
    """
    Resolve an appointment type that can be booked.

    Raises:
        NotFoundError: If no such appointment type exists
        ValidationError: If it exists but is not active
    """
    appointment_type = await store.get_appointment_type(appointment_type_id)
    if appointment_type is None:
        raise NotFoundError(f"Appointment type '{appointment_type_id}' not found")
    if not appointment_type.is_active:
        raise ValidationError(f"Appointment type '{appointment_type_id}' is not active")
    return appointment_type


class AvailabilityService:
    """
    Orchestrates store reads and slot calculation.

    Dependency inversion toward the store protocols makes it easy to plug in
    the Supabase adapter or the in-memory store in tests.
    """

    def __init__(
        self,
        store: AvailabilityStore,
        calculator: AvailabilityCalculator,
        *,
        timeout_seconds: Optional[float] = 10.0,
        reject_past_dates: bool = False,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._store = store
        self._calculator = calculator
        self._timeout_seconds = timeout_seconds
        self._reject_past_dates = reject_past_dates
        self._today = today or (lambda: pendulum.today(calculator.timezone).date())

    async def compute_available_slots(
        self,
        request: AvailabilityRequest,
        timeout: Optional[float] = None,
    ) -> List[TimeSlot]:
        """
        Return every candidate slot for the request, sorted by time of day.

        An empty list means no schedule applies on that date. Store failures
        propagate as ``StoreError``.
        """
        self._check_date(request.date)

        appointment_type, schedules, booked = await with_timeout(
            self.fetch_inputs(request),
            self._timeout_seconds if timeout is None else timeout,
            "Availability lookup",
        )

        slots = self._calculator.calculate(
            day=request.date,
            appointment_type=appointment_type,
            schedules=schedules,
            booked=booked,
        )
        logger.debug(
            "Computed %d slots (%d available) for %s on %s",
            len(slots), sum(1 for s in slots if s.available), appointment_type.id, request.date,
        )
        return slots

    async def summarize(
        self,
        request: AvailabilityRequest,
        timeout: Optional[float] = None,
    ) -> AvailabilityReport:
        """Compute slots and wrap them with total/available counts."""
        slots = await self.compute_available_slots(request, timeout=timeout)
        return AvailabilityReport(
            date=request.date,
            appointment_type_id=request.appointment_type_id,
            slots=slots,
        )

    async def fetch_inputs(
        self,
        request: AvailabilityRequest,
    ) -> Tuple[AppointmentType, List[WorkingSchedule], List[BookedInterval]]:
        """Read the appointment type, the day's schedules and the day's bookings."""
        appointment_type = await get_active_appointment_type(
            self._store, request.appointment_type_id
        )

        schedules = await self._store.get_working_schedules(
            day_of_week(request.date),
            doctor_id=request.doctor_id,
            location_id=request.location_id,
        )
        if not schedules:
            logger.debug(
                "No working schedules on %s for doctor=%s location=%s",
                request.date, request.doctor_id, request.location_id,
            )
            return appointment_type, [], []

        day_start = pendulum.datetime(
            request.date.year, request.date.month, request.date.day,
            tz=self._calculator.timezone,
        )
        booked = await self._store.get_booked_intervals(
            day_start,
            day_start.add(days=1),
            doctor_id=request.doctor_id,
        )

        return appointment_type, schedules, booked

    def _check_date(self, requested: date) -> None:
        if self._reject_past_dates and requested < self._today():
            raise ValidationError(f"Cannot check availability for past date {requested}")
