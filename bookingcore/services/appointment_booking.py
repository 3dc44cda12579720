"""
Booking creation with write-time conflict checks.

Availability answers are snapshots, so a slot shown as free may be taken by
another request before this one writes. The booking is therefore checked
against the doctor's current bookings right before it is stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import ConflictError, NotificationError, ValidationError
from ..domain.models import Appointment, AppointmentStatus, TimeRange
from .availability_service import get_active_appointment_type
from .store import BookingStore, Notifier, with_timeout

logger = logging.getLogger(__name__)

APPOINTMENT_CREATED = "appointment.created"


@dataclass(frozen=True)
class AppointmentBookingRequest:
    """A patient's request for a concrete appointment start time."""
    patient_id: str
    appointment_type_id: str
    scheduled_at: DateTime
    doctor_id: Optional[str] = None
    location_id: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        if not self.patient_id:
            raise ValidationError("patient_id is required")
        if not self.appointment_type_id:
            raise ValidationError("appointment_type_id is required")
        object.__setattr__(self, "scheduled_at", pendulum.instance(self.scheduled_at))


class AppointmentBookingService:
    """Creates appointments and notifies about them."""

    def __init__(
        self,
        store: BookingStore,
        notifier: Notifier,
        *,
        timeout_seconds: Optional[float] = 10.0,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._timeout_seconds = timeout_seconds

    async def book(
        self,
        request: AppointmentBookingRequest,
        timeout: Optional[float] = None,
    ) -> Appointment:
        """
        Store a new appointment if its time is still free.

        Raises:
            NotFoundError: If the appointment type does not exist
            ConflictError: If the doctor already has an overlapping booking
            StoreError: If the store fails
        """
        appointment = await with_timeout(
            self._create(request),
            self._timeout_seconds if timeout is None else timeout,
            "Appointment booking",
        )
        logger.info(
            "Booked appointment %s for patient %s at %s",
            appointment.id, appointment.patient_id, appointment.scheduled_at,
        )

        await self._notify(APPOINTMENT_CREATED, self._payload(appointment))
        return appointment

    async def _create(self, request: AppointmentBookingRequest) -> Appointment:
        appointment_type = await get_active_appointment_type(
            self._store, request.appointment_type_id
        )
        start = request.scheduled_at
        end = start.add(minutes=appointment_type.duration_minutes)

        if request.doctor_id is not None:
            await self._ensure_free(request.doctor_id, TimeRange(start=start, end=end))

        return await self._store.create_appointment(
            Appointment(
                patient_id=request.patient_id,
                appointment_type_id=appointment_type.id,
                scheduled_at=start,
                end_time=end,
                doctor_id=request.doctor_id,
                location_id=request.location_id,
                status=AppointmentStatus.SCHEDULED,
                notes=request.notes,
            )
        )

    async def _ensure_free(self, doctor_id: str, window: TimeRange) -> None:
        day_start = window.start.start_of("day")
        booked = await self._store.get_booked_intervals(
            day_start, day_start.add(days=1), doctor_id=doctor_id
        )
        for interval in booked:
            if interval.staff_id == doctor_id and window.overlaps(interval.as_range()):
                raise ConflictError(
                    f"Doctor {doctor_id} is already booked between "
                    f"{interval.start.format('HH:mm')} and {interval.end.format('HH:mm')}"
                )

    async def _notify(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            await self._notifier.notify(event, payload)
        except NotificationError as exc:
            logger.warning("Notification '%s' failed: %s", event, exc)

    @staticmethod
    def _payload(appointment: Appointment) -> Dict[str, Any]:
        return {
            "appointment_id": appointment.id,
            "patient_id": appointment.patient_id,
            "doctor_id": appointment.doctor_id,
            "appointment_type_id": appointment.appointment_type_id,
            "location_id": appointment.location_id,
            "scheduled_at": appointment.scheduled_at.to_iso8601_string(),
            "end_time": appointment.end_time.to_iso8601_string(),
            "status": appointment.status.value,
        }
