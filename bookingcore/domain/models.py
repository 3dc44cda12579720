"""
Domain models for schedules, bookings, slots and recurring sessions.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from enum import Enum
from typing import Optional, Tuple

from pendulum import DateTime

from .exceptions import ValidationError

SLOT_GRANULARITY_MINUTES = 15


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class WorkingSchedule:
    """
    A staff member's recurring weekly availability window at one location.

    Times are wall-clock times of day; ``day_of_week`` follows ISO numbering
    (1=Monday, 7=Sunday).
    """
    id: str
    staff_id: str
    location_id: Optional[str]
    day_of_week: int
    start_time: time
    end_time: time
    break_start: Optional[time] = None
    break_end: Optional[time] = None
    is_active: bool = True
    staff_name: Optional[str] = None

    def __post_init__(self):
        if not 1 <= self.day_of_week <= 7:
            raise ValidationError(f"day_of_week must be between 1 and 7, got {self.day_of_week}")
        if self.start_time >= self.end_time:
            raise ValidationError(
                f"Schedule {self.id}: start {self.start_time} must be before end {self.end_time}"
            )
        if (self.break_start is None) != (self.break_end is None):
            raise ValidationError(f"Schedule {self.id}: break needs both a start and an end")
        if self.has_break:
            if self.break_start >= self.break_end:
                raise ValidationError(
                    f"Schedule {self.id}: break start {self.break_start} must be before break end {self.break_end}"
                )
            if self.break_start < self.start_time or self.break_end > self.end_time:
                raise ValidationError(f"Schedule {self.id}: break must lie within working hours")

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    def start_minute(self) -> int:
        """Minutes after midnight at which the schedule opens."""
        return _minutes(self.start_time)

    def end_minute(self) -> int:
        """Minutes after midnight at which the schedule closes."""
        return _minutes(self.end_time)

    def break_minutes(self) -> Optional[Tuple[int, int]]:
        """Return the break window as minutes after midnight, if any."""
        if not self.has_break:
            return None
        return _minutes(self.break_start), _minutes(self.break_end)


@dataclass(frozen=True)
class AppointmentType:
    """A bookable kind of appointment. Its duration is the slot length."""
    id: str
    name: str
    duration_minutes: int
    is_active: bool = True

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValidationError(
                f"Appointment type {self.id}: duration_minutes must be greater than zero"
            )


@dataclass(frozen=True)
class BookedInterval:
    """
    Time already occupied by an appointment or session.

    Intervals without a staff member do not block anyone's schedule.
    """
    start: DateTime
    end: DateTime
    staff_id: Optional[str] = None
    booking_id: Optional[str] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(f"Booking {self.booking_id}: start must be before end")

    def as_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)


@dataclass(frozen=True)
class TimeSlot:
    """
    A candidate appointment start time for one staff member.

    Computed per request and never persisted.
    """
    time: str  # HH:MM
    available: bool
    staff_id: str
    appointment_type_id: str
    staff_name: Optional[str] = None
    location_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "available": self.available,
            "doctor_id": self.staff_id,
            "doctor_name": self.staff_name,
            "appointment_type_id": self.appointment_type_id,
            "location_id": self.location_id,
        }


@dataclass(frozen=True)
class AvailabilityRequest:
    """Query for the bookable slots of one appointment type on one date."""
    date: date
    appointment_type_id: str
    doctor_id: Optional[str] = None
    location_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.date, date):
            raise ValidationError(f"date must be a calendar date, got {self.date!r}")
        if isinstance(self.date, datetime):
            object.__setattr__(self, "date", self.date.date())
        if not self.appointment_type_id:
            raise ValidationError("appointment_type_id is required")


class RecurrenceType(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: "RecurrenceType | str | None") -> "RecurrenceType":
        """Coerce user input to a recurrence type; ``None`` means no recurrence."""
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(
                f"Unknown recurrence type '{value}'. Expected one of: {allowed}"
            ) from exc


@dataclass(frozen=True)
class SessionTemplate:
    """
    The first, persisted occurrence of a (possibly) recurring session series.

    ``id`` is ``None`` until the store has created the record.
    """
    title: str
    start_time: DateTime
    end_time: DateTime
    description: Optional[str] = None
    group_id: Optional[str] = None
    patient_id: Optional[str] = None
    location_id: Optional[str] = None
    staff_ids: Tuple[str, ...] = ()
    recurrence_type: RecurrenceType = RecurrenceType.NONE
    recurrence_end_date: Optional[date] = None
    created_by: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        if not self.title:
            raise ValidationError("Session title is required")
        if self.start_time >= self.end_time:
            raise ValidationError(
                f"Session start {self.start_time} must be before end {self.end_time}"
            )
        object.__setattr__(self, "recurrence_type", RecurrenceType.parse(self.recurrence_type))
        object.__setattr__(self, "staff_ids", tuple(self.staff_ids))

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_type is not RecurrenceType.NONE

    def with_id(self, session_id: str) -> "SessionTemplate":
        return replace(self, id=session_id)


@dataclass(frozen=True)
class SessionInstance:
    """A concrete occurrence generated from a template, linked to it as parent."""
    title: str
    start_time: DateTime
    end_time: DateTime
    parent_session_id: str
    recurrence_type: RecurrenceType
    description: Optional[str] = None
    group_id: Optional[str] = None
    patient_id: Optional[str] = None
    location_id: Optional[str] = None
    staff_ids: Tuple[str, ...] = field(default_factory=tuple)
    created_by: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValidationError(
                f"Session start {self.start_time} must be before end {self.end_time}"
            )

    @property
    def date(self) -> date:
        return self.start_time.date()

    def with_id(self, session_id: str) -> "SessionInstance":
        return replace(self, id=session_id)


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class Appointment:
    """A patient appointment as stored by the practice."""
    patient_id: str
    appointment_type_id: str
    scheduled_at: DateTime
    end_time: DateTime
    doctor_id: Optional[str] = None
    location_id: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        if self.scheduled_at >= self.end_time:
            raise ValidationError("Appointment must start before it ends")
        try:
            status = AppointmentStatus(self.status)
        except ValueError as exc:
            raise ValidationError(f"Unknown appointment status '{self.status}'") from exc
        object.__setattr__(self, "status", status)

    @property
    def occupies_time(self) -> bool:
        return self.status is not AppointmentStatus.CANCELLED

    def as_booked_interval(self) -> BookedInterval:
        return BookedInterval(
            start=self.scheduled_at,
            end=self.end_time,
            staff_id=self.doctor_id,
            booking_id=self.id,
        )

    def with_id(self, appointment_id: str) -> "Appointment":
        return replace(self, id=appointment_id)
