"""
Tests for store row mapping.
"""

from datetime import date, time

import pendulum
import pytest

from bookingcore.adapters.records import (
    appointment_to_row,
    parse_appointment,
    parse_booked_interval,
    parse_datetime,
    parse_session,
    parse_working_schedule,
    session_to_row,
)
from bookingcore.domain.exceptions import StoreError
from bookingcore.domain.models import (
    Appointment,
    AppointmentStatus,
    RecurrenceType,
    SessionInstance,
    SessionTemplate,
)

TZ = "Europe/Amsterdam"

SCHEDULE_ROW = {
    "id": "sched-1",
    "doctor_id": "dr-a",
    "location_id": "loc-1",
    "day_of_week": 1,
    "start_time": "09:00:00",
    "end_time": "12:00:00",
    "break_start": "10:30:00",
    "break_end": "10:45:00",
    "is_active": True,
    "doctor": {"name": "Dr. Jansen"},
}

SESSION_ROW = {
    "id": "session-1",
    "title": "Training",
    "description": None,
    "group_id": "group-7",
    "location_id": "hall-2",
    "start_time": "2025-01-06T17:00:00+00:00",
    "end_time": "2025-01-06T18:30:00+00:00",
    "recurrence_type": "weekly",
    "recurrence_end_date": "2025-03-31",
    "parent_session_id": None,
    "created_by": "admin-1",
}


class TestParseRows:
    """Tests for row to model mapping."""

    def test_working_schedule_with_joined_doctor(self):
        schedule = parse_working_schedule(SCHEDULE_ROW)

        assert schedule.staff_id == "dr-a"
        assert schedule.staff_name == "Dr. Jansen"
        assert schedule.start_time == time(9, 0)
        assert schedule.break_minutes() == (630, 645)

    def test_schedule_missing_column_raises_store_error(self):
        row = dict(SCHEDULE_ROW)
        del row["end_time"]

        with pytest.raises(StoreError, match="Malformed doctor_schedules record sched-1"):
            parse_working_schedule(row)

    def test_schedule_with_bad_time_raises_store_error(self):
        with pytest.raises(StoreError):
            parse_working_schedule({**SCHEDULE_ROW, "start_time": "nine"})

    def test_non_mapping_row_raises_store_error(self):
        with pytest.raises(StoreError, match="expected an object"):
            parse_working_schedule(["sched-1"])

    def test_invalid_domain_values_become_store_errors(self):
        with pytest.raises(StoreError):
            parse_working_schedule({**SCHEDULE_ROW, "day_of_week": 9})

    def test_timestamps_are_converted_to_timezone(self):
        value = parse_datetime("2025-01-06T09:00:00+00:00", TZ)

        assert value.hour == 10
        assert value.timezone_name == TZ

    def test_booked_interval(self):
        interval = parse_booked_interval(
            {
                "id": "appt-1",
                "doctor_id": "dr-a",
                "scheduled_at": "2025-01-06T09:00:00+00:00",
                "end_time": "2025-01-06T09:15:00+00:00",
            },
            TZ,
        )

        assert interval.staff_id == "dr-a"
        assert interval.booking_id == "appt-1"
        assert interval.as_range().duration_minutes() == 15

    def test_appointment_missing_patient_raises_store_error(self):
        with pytest.raises(StoreError, match="appointments"):
            parse_appointment(
                {
                    "id": "appt-1",
                    "patient_id": None,
                    "appointment_type_id": "consult",
                    "scheduled_at": "2025-01-06T09:00:00+00:00",
                    "end_time": "2025-01-06T09:15:00+00:00",
                },
                TZ,
            )

    def test_session_template_row(self):
        session = parse_session(SESSION_ROW, TZ, staff_ids=["trainer-a"])

        assert isinstance(session, SessionTemplate)
        assert session.recurrence_type is RecurrenceType.WEEKLY
        assert session.recurrence_end_date == date(2025, 3, 31)
        assert session.staff_ids == ("trainer-a",)
        assert session.start_time.hour == 18

    def test_session_instance_row(self):
        session = parse_session({**SESSION_ROW, "id": "session-2", "parent_session_id": "session-1"}, TZ)

        assert isinstance(session, SessionInstance)
        assert session.parent_session_id == "session-1"

    def test_session_with_unknown_recurrence_raises_store_error(self):
        with pytest.raises(StoreError):
            parse_session({**SESSION_ROW, "recurrence_type": "yearly"}, TZ)


class TestRowPayloads:
    """Tests for model to row mapping."""

    def test_template_payload(self):
        start = pendulum.datetime(2025, 1, 6, 18, 0, tz=TZ)
        template = SessionTemplate(
            title="Training",
            start_time=start,
            end_time=start.add(minutes=90),
            staff_ids=("trainer-a",),
            recurrence_type="weekly",
            recurrence_end_date=date(2025, 3, 31),
        )

        row = session_to_row(template)

        assert row["date"] == "2025-01-06"
        assert row["recurrence_type"] == "weekly"
        assert row["recurrence_end_date"] == "2025-03-31"
        assert row["parent_session_id"] is None
        assert "staff_ids" not in row
        assert "patient_id" not in row

    def test_instance_payload_references_parent(self):
        start = pendulum.datetime(2025, 1, 13, 18, 0, tz=TZ)
        instance = SessionInstance(
            title="Training",
            start_time=start,
            end_time=start.add(minutes=90),
            parent_session_id="session-1",
            recurrence_type=RecurrenceType.WEEKLY,
        )

        row = session_to_row(instance)

        assert row["parent_session_id"] == "session-1"
        assert "recurrence_end_date" not in row

    def test_appointment_payload(self):
        start = pendulum.datetime(2025, 1, 6, 10, 0, tz=TZ)
        appointment = Appointment(
            patient_id="p1",
            appointment_type_id="consult",
            scheduled_at=start,
            end_time=start.add(minutes=30),
            doctor_id="dr-a",
        )

        row = appointment_to_row(appointment)

        assert row["status"] == AppointmentStatus.SCHEDULED.value
        assert row["scheduled_at"] == "2025-01-06T10:00:00+01:00"
        assert "id" not in row
