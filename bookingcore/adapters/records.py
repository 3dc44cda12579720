"""
Mapping between store rows and domain models.

Rows coming back from the store are validated here. A malformed record is a
store failure and raises ``StoreError``; it is never replaced by defaults.
"""

from contextlib import contextmanager
from datetime import date, time
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Union

import pendulum
from pendulum import DateTime

from ..domain.exceptions import StoreError
from ..domain.models import (
    Appointment,
    AppointmentType,
    BookedInterval,
    RecurrenceType,
    SessionInstance,
    SessionTemplate,
    WorkingSchedule,
)

Row = Mapping[str, Any]


@contextmanager
def _mapping(table: str, row: Any) -> Iterator[None]:
    try:
        if not isinstance(row, Mapping):
            raise TypeError(f"expected an object, got {type(row).__name__}")
        yield
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        record_id = row.get("id", "?") if isinstance(row, Mapping) else "?"
        raise StoreError(f"Malformed {table} record {record_id}: {exc}") from exc


def parse_time(value: Any) -> time:
    """Parse a Postgres ``time`` value such as ``09:00`` or ``09:00:00``."""
    if not isinstance(value, str):
        raise ValueError(f"time must be a string, got {value!r}")
    return time.fromisoformat(value)


def parse_optional_time(value: Any) -> Optional[time]:
    if value is None:
        return None
    return parse_time(value)


def parse_datetime(value: Any, timezone: str) -> DateTime:
    """
    Parse an ISO 8601 timestamp and convert it to ``timezone``.

    Raises:
        ValueError: If the value is not a full timestamp
    """
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {value!r}")

    parsed = pendulum.parse(value, tz=timezone)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value}")
    return parsed.in_timezone(timezone)


def parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"date must be a string, got {value!r}")
    return date.fromisoformat(value[:10])


def _required_str(row: Row, key: str) -> str:
    value = row[key]
    if value is None or value == "":
        raise ValueError(f"'{key}' is required")
    return str(value)


def _optional_str(row: Row, key: str) -> Optional[str]:
    value = row.get(key)
    return None if value is None else str(value)


def _bool(row: Row, key: str, default: bool) -> bool:
    value = row.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be a boolean, got {value!r}")
    return value


def parse_working_schedule(row: Row) -> WorkingSchedule:
    """Map a ``doctor_schedules`` row (optionally joined with ``doctor:users(name)``)."""
    with _mapping("doctor_schedules", row):
        doctor = row.get("doctor") or {}
        return WorkingSchedule(
            id=_required_str(row, "id"),
            staff_id=_required_str(row, "doctor_id"),
            location_id=_optional_str(row, "location_id"),
            day_of_week=int(row["day_of_week"]),
            start_time=parse_time(row["start_time"]),
            end_time=parse_time(row["end_time"]),
            break_start=parse_optional_time(row.get("break_start")),
            break_end=parse_optional_time(row.get("break_end")),
            is_active=_bool(row, "is_active", True),
            staff_name=doctor.get("name") or row.get("doctor_name"),
        )


def parse_appointment_type(row: Row) -> AppointmentType:
    with _mapping("appointment_types", row):
        return AppointmentType(
            id=_required_str(row, "id"),
            name=_required_str(row, "name"),
            duration_minutes=int(row["duration_minutes"]),
            is_active=_bool(row, "is_active", True),
        )


def parse_appointment(row: Row, timezone: str) -> Appointment:
    with _mapping("appointments", row):
        return Appointment(
            id=_optional_str(row, "id"),
            patient_id=_required_str(row, "patient_id"),
            doctor_id=_optional_str(row, "doctor_id"),
            appointment_type_id=_required_str(row, "appointment_type_id"),
            location_id=_optional_str(row, "location_id"),
            scheduled_at=parse_datetime(row["scheduled_at"], timezone),
            end_time=parse_datetime(row["end_time"], timezone),
            status=row.get("status", "scheduled"),
            notes=_optional_str(row, "notes"),
        )


def parse_booked_interval(row: Row, timezone: str) -> BookedInterval:
    """Map the time-relevant columns of an ``appointments`` row."""
    with _mapping("appointments", row):
        return BookedInterval(
            start=parse_datetime(row["scheduled_at"], timezone),
            end=parse_datetime(row["end_time"], timezone),
            staff_id=_optional_str(row, "doctor_id"),
            booking_id=_optional_str(row, "id"),
        )


def parse_session(
    row: Row,
    timezone: str,
    staff_ids: Sequence[str] = (),
) -> Union[SessionTemplate, SessionInstance]:
    """
    Map a ``sessions`` row.

    Rows with a ``parent_session_id`` are instances, all others templates.
    """
    with _mapping("sessions", row):
        common = dict(
            id=_required_str(row, "id"),
            title=_required_str(row, "title"),
            description=_optional_str(row, "description"),
            group_id=_optional_str(row, "group_id"),
            patient_id=_optional_str(row, "patient_id"),
            location_id=_optional_str(row, "location_id"),
            start_time=parse_datetime(row["start_time"], timezone),
            end_time=parse_datetime(row["end_time"], timezone),
            staff_ids=tuple(staff_ids),
            created_by=_optional_str(row, "created_by"),
        )
        recurrence = RecurrenceType.parse(row.get("recurrence_type"))

        if row.get("parent_session_id"):
            return SessionInstance(
                parent_session_id=str(row["parent_session_id"]),
                recurrence_type=recurrence,
                **common,
            )

        return SessionTemplate(
            recurrence_type=recurrence,
            recurrence_end_date=parse_date(row.get("recurrence_end_date")),
            **common,
        )


def session_to_row(session: Union[SessionTemplate, SessionInstance]) -> Dict[str, Any]:
    """Build the ``sessions`` insert payload (staff links are stored separately)."""
    row: Dict[str, Any] = {
        "title": session.title,
        "description": session.description,
        "group_id": session.group_id,
        "location_id": session.location_id,
        "date": session.start_time.to_date_string(),
        "start_time": session.start_time.to_iso8601_string(),
        "end_time": session.end_time.to_iso8601_string(),
        "recurrence_type": session.recurrence_type.value,
        "created_by": session.created_by,
    }
    if session.patient_id is not None:
        row["patient_id"] = session.patient_id

    if isinstance(session, SessionInstance):
        row["parent_session_id"] = session.parent_session_id
    else:
        row["recurrence_end_date"] = (
            session.recurrence_end_date.isoformat() if session.recurrence_end_date else None
        )
        row["parent_session_id"] = None

    return row


def appointment_to_row(appointment: Appointment) -> Dict[str, Any]:
    return {
        "patient_id": appointment.patient_id,
        "doctor_id": appointment.doctor_id,
        "appointment_type_id": appointment.appointment_type_id,
        "location_id": appointment.location_id,
        "scheduled_at": appointment.scheduled_at.to_iso8601_string(),
        "end_time": appointment.end_time.to_iso8601_string(),
        "status": appointment.status.value,
        "notes": appointment.notes,
    }
