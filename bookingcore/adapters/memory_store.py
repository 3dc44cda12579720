"""
In-memory booking store for tests and offline use of the CLI.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union
from uuid import uuid4

from pendulum import DateTime

from ..domain.exceptions import ConflictError, NotFoundError
from ..domain.models import (
    Appointment,
    AppointmentType,
    BookedInterval,
    SessionInstance,
    SessionTemplate,
    WorkingSchedule,
)
from .records import parse_appointment, parse_appointment_type, parse_working_schedule

Session = Union[SessionTemplate, SessionInstance]


class InMemoryBookingStore:
    """
    Store that keeps domain objects in plain lists and dicts.

    It implements the same reader/writer methods as ``SupabaseStore`` and
    enforces the one invariant the real database enforces for us: a staff
    member's bookings never overlap.
    """

    def __init__(
        self,
        schedules: Iterable[WorkingSchedule] = (),
        appointment_types: Iterable[AppointmentType] = (),
        appointments: Iterable[Appointment] = (),
    ):
        self.schedules: List[WorkingSchedule] = list(schedules)
        self.appointment_types: Dict[str, AppointmentType] = {t.id: t for t in appointment_types}
        self.appointments: List[Appointment] = [
            a if a.id else a.with_id(self._new_id()) for a in appointments
        ]
        self.sessions: Dict[str, Session] = {}
        self.session_staff: Dict[str, List[str]] = {}

    @classmethod
    def from_json(cls, path: Path, timezone: str = "Europe/Amsterdam") -> "InMemoryBookingStore":
        """
        Load store contents from a JSON fixture file.

        The file holds a mapping with ``doctor_schedules``, ``appointment_types``
        and ``appointments`` lists using the same column names as the database.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not valid JSON or not a mapping
            StoreError: If a record is malformed
        """
        if not path.exists():
            raise FileNotFoundError(f"Fixture file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Fixture file must contain a mapping at the root level.")

        return cls(
            schedules=[parse_working_schedule(row) for row in data.get("doctor_schedules", [])],
            appointment_types=[parse_appointment_type(row) for row in data.get("appointment_types", [])],
            appointments=[parse_appointment(row, timezone) for row in data.get("appointments", [])],
        )

    @staticmethod
    def _new_id() -> str:
        return str(uuid4())

    async def get_working_schedules(
        self,
        day_of_week: int,
        doctor_id: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> List[WorkingSchedule]:
        return [
            s for s in self.schedules
            if s.is_active
            and s.day_of_week == day_of_week
            and (doctor_id is None or s.staff_id == doctor_id)
            and (location_id is None or s.location_id == location_id)
        ]

    async def get_booked_intervals(
        self,
        start: DateTime,
        end: DateTime,
        doctor_id: Optional[str] = None,
    ) -> List[BookedInterval]:
        return [
            a.as_booked_interval() for a in self.appointments
            if a.occupies_time
            and start <= a.scheduled_at < end
            and (doctor_id is None or a.doctor_id == doctor_id)
        ]

    async def get_appointment_type(self, appointment_type_id: str) -> Optional[AppointmentType]:
        return self.appointment_types.get(appointment_type_id)

    async def create_session(self, template: SessionTemplate) -> SessionTemplate:
        saved = template.with_id(self._new_id())
        self.sessions[saved.id] = saved
        return saved

    async def create_session_instances(
        self, instances: Sequence[SessionInstance]
    ) -> List[SessionInstance]:
        saved = [instance.with_id(self._new_id()) for instance in instances]
        for instance in saved:
            self.sessions[instance.id] = instance
        return saved

    async def link_staff_to_instances(
        self, instance_ids: Sequence[str], staff_ids: Sequence[str]
    ) -> None:
        missing = [i for i in instance_ids if i not in self.sessions]
        if missing:
            raise NotFoundError(f"Unknown session id(s): {', '.join(missing)}")
        for session_id in instance_ids:
            linked = self.session_staff.setdefault(session_id, [])
            linked.extend(s for s in staff_ids if s not in linked)

    async def delete_children(self, parent_id: str) -> None:
        for instance in self.children_of(parent_id):
            self.sessions.pop(instance.id, None)
            self.session_staff.pop(instance.id, None)

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        if appointment.doctor_id is not None and appointment.occupies_time:
            candidate = appointment.as_booked_interval().as_range()
            for existing in self.appointments:
                if (
                    existing.doctor_id == appointment.doctor_id
                    and existing.occupies_time
                    and candidate.overlaps(existing.as_booked_interval().as_range())
                ):
                    raise ConflictError(
                        f"Doctor {appointment.doctor_id} already has appointment {existing.id} at that time"
                    )

        saved = appointment.with_id(self._new_id())
        self.appointments.append(saved)
        return saved

    def children_of(self, parent_id: str) -> List[SessionInstance]:
        """Instances generated from a template, in chronological order."""
        return sorted(
            (
                s for s in self.sessions.values()
                if isinstance(s, SessionInstance) and s.parent_session_id == parent_id
            ),
            key=lambda s: s.start_time,
        )
