"""
Protocols describing the booking store and notifier collaborators.

The services depend on these protocols only, so the Supabase adapter, the
in-memory store or a test stub can be plugged in interchangeably. Readers
return ``None`` or an empty list for "nothing there"; infrastructure
failures raise ``StoreError``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Sequence, TypeVar

from pendulum import DateTime

from ..domain.exceptions import StoreTimeoutError
from ..domain.models import (
    Appointment,
    AppointmentType,
    BookedInterval,
    SessionInstance,
    SessionTemplate,
    WorkingSchedule,
)

T = TypeVar("T")


class ScheduleReader(Protocol):
    async def get_working_schedules(
        self,
        day_of_week: int,
        doctor_id: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> List[WorkingSchedule]:
        """Return active schedules for an ISO weekday, optionally filtered."""


class BookingReader(Protocol):
    async def get_booked_intervals(
        self,
        start: DateTime,
        end: DateTime,
        doctor_id: Optional[str] = None,
    ) -> List[BookedInterval]:
        """Return non-cancelled bookings starting in ``[start, end)``."""


class AppointmentTypeReader(Protocol):
    async def get_appointment_type(self, appointment_type_id: str) -> Optional[AppointmentType]:
        """Return the appointment type or ``None`` if it does not exist."""


class BookingWriter(Protocol):
    async def create_session(self, template: SessionTemplate) -> SessionTemplate:
        """Persist a template session and return it with its id."""

    async def create_session_instances(
        self, instances: Sequence[SessionInstance]
    ) -> List[SessionInstance]:
        """Persist instances in one batch, preserving order, and return them with ids."""

    async def link_staff_to_instances(
        self, instance_ids: Sequence[str], staff_ids: Sequence[str]
    ) -> None:
        """Assign every staff member to every session."""

    async def delete_children(self, parent_id: str) -> None:
        """Remove every session generated from ``parent_id`` (used to undo a failed batch)."""

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        """Persist an appointment; raises ``ConflictError`` if the store detects an overlap."""


class AvailabilityStore(ScheduleReader, BookingReader, AppointmentTypeReader, Protocol):
    """The reads an availability query needs."""


class BookingStore(ScheduleReader, BookingReader, AppointmentTypeReader, BookingWriter, Protocol):
    """Everything the services need from the store."""


class Notifier(Protocol):
    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        """Deliver a structured event; raises ``NotificationError`` on failure."""


async def with_timeout(awaitable: Awaitable[T], timeout: Optional[float], operation: str) -> T:
    """
    Await ``awaitable`` but give up after ``timeout`` seconds.

    Raises:
        StoreTimeoutError: If the deadline passes; nothing partial is returned
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise StoreTimeoutError(f"{operation} did not finish within {timeout:g}s") from exc
