"""
Tests for the availability calculator.
"""

from datetime import date, time

import pendulum

from bookingcore.domain.availability import AvailabilityCalculator, day_of_week, format_minutes
from bookingcore.domain.models import AppointmentType, BookedInterval, WorkingSchedule

TZ = "Europe/Amsterdam"
MONDAY = date(2025, 1, 6)


def _schedule(staff_id="dr-a", start=(9, 0), end=(12, 0), day=1, **kwargs) -> WorkingSchedule:
    return WorkingSchedule(
        id=f"sched-{staff_id}-{day}",
        staff_id=staff_id,
        location_id="loc-1",
        day_of_week=day,
        start_time=time(*start),
        end_time=time(*end),
        **kwargs,
    )


def _booking(staff_id, start, end) -> BookedInterval:
    return BookedInterval(
        start=pendulum.datetime(2025, 1, 6, *start, tz=TZ),
        end=pendulum.datetime(2025, 1, 6, *end, tz=TZ),
        staff_id=staff_id,
    )


def _type(minutes) -> AppointmentType:
    return AppointmentType(id=f"type-{minutes}", name=f"{minutes} min", duration_minutes=minutes)


class TestHelpers:
    """Tests for weekday and time formatting helpers."""

    def test_day_of_week_is_iso(self):
        assert day_of_week(date(2025, 1, 6)) == 1  # Monday
        assert day_of_week(date(2025, 1, 12)) == 7  # Sunday

    def test_format_minutes(self):
        assert format_minutes(9 * 60) == "09:00"
        assert format_minutes(13 * 60 + 45) == "13:45"


class TestAvailabilityCalculator:
    """Tests for AvailabilityCalculator."""

    def test_single_booking_blocks_one_slot(self):
        """15-minute type, 09:00-12:00, booked 10:00-10:15."""
        calculator = AvailabilityCalculator(timezone=TZ)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(15),
            schedules=[_schedule()],
            booked=[_booking("dr-a", (10, 0), (10, 15))],
        )

        assert len(slots) == 12
        assert slots[0].time == "09:00"
        assert slots[-1].time == "11:45"

        unavailable = [s.time for s in slots if not s.available]
        assert unavailable == ["10:00"]
        assert all(s.staff_id == "dr-a" and s.appointment_type_id == "type-15" for s in slots)

    def test_no_schedule_returns_empty_list(self):
        calculator = AvailabilityCalculator(timezone=TZ)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(15),
            schedules=[],
            booked=[],
        )

        assert slots == []

    def test_other_weekdays_and_inactive_schedules_are_ignored(self):
        calculator = AvailabilityCalculator(timezone=TZ)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(15),
            schedules=[
                _schedule(staff_id="dr-tue", day=2),
                _schedule(staff_id="dr-off", is_active=False),
            ],
            booked=[],
        )

        assert slots == []

    def test_break_window_is_excluded(self):
        """Neither the 15-minute step nor the service window may touch the break."""
        calculator = AvailabilityCalculator(timezone=TZ)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(30),
            schedules=[_schedule(end=(13, 0), break_start=time(11, 0), break_end=time(11, 30))],
            booked=[],
        )

        times = [s.time for s in slots]
        assert times == [
            "09:00", "09:15", "09:30", "09:45", "10:00", "10:15", "10:30",
            "11:30", "11:45", "12:00", "12:15", "12:30",
        ]

    def test_no_emitted_slot_touches_break(self):
        calculator = AvailabilityCalculator(timezone=TZ)
        schedule = _schedule(start=(8, 0), end=(17, 0), break_start=time(12, 10), break_end=time(12, 50))

        for minutes in (10, 15, 20, 45, 60):
            slots = calculator.calculate(
                day=MONDAY,
                appointment_type=_type(minutes),
                schedules=[schedule],
                booked=[],
            )
            for slot in slots:
                hour, minute = map(int, slot.time.split(":"))
                start = hour * 60 + minute
                occupied_end = start + max(15, minutes)
                assert not (start < 12 * 60 + 50 and occupied_end > 12 * 60 + 10), (minutes, slot.time)

    def test_service_window_is_clipped_to_closing_time(self):
        calculator = AvailabilityCalculator(timezone=TZ)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(45),
            schedules=[_schedule(end=(10, 0))],
            booked=[],
        )

        assert [s.time for s in slots] == ["09:00", "09:15"]

    def test_clipping_can_be_disabled(self):
        calculator = AvailabilityCalculator(timezone=TZ, clip_to_schedule_end=False)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(45),
            schedules=[_schedule(end=(10, 0))],
            booked=[],
        )

        assert [s.time for s in slots] == ["09:00", "09:15", "09:30", "09:45"]

    def test_service_window_overlap_marks_unavailable(self):
        """A 30-minute slot is taken if any part of it overlaps a booking."""
        calculator = AvailabilityCalculator(timezone=TZ)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(30),
            schedules=[_schedule()],
            booked=[_booking("dr-a", (10, 10), (10, 40))],
        )

        unavailable = [s.time for s in slots if not s.available]
        assert unavailable == ["09:45", "10:00", "10:15", "10:30"]

    def test_available_slots_never_overlap_bookings(self):
        calculator = AvailabilityCalculator(timezone=TZ)
        booked = [
            _booking("dr-a", (9, 20), (9, 50)),
            _booking("dr-a", (11, 0), (11, 45)),
            _booking("dr-b", (10, 0), (12, 0)),
        ]

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(25),
            schedules=[_schedule("dr-a"), _schedule("dr-b")],
            booked=booked,
        )

        for slot in slots:
            if not slot.available:
                continue
            hour, minute = map(int, slot.time.split(":"))
            start = pendulum.datetime(2025, 1, 6, hour, minute, tz=TZ)
            end = start.add(minutes=25)
            for interval in booked:
                if interval.staff_id == slot.staff_id:
                    assert not (start < interval.end and end > interval.start)

    def test_bookings_of_other_staff_do_not_block(self):
        calculator = AvailabilityCalculator(timezone=TZ)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(15),
            schedules=[_schedule("dr-a")],
            booked=[
                _booking("dr-b", (9, 0), (12, 0)),
                BookedInterval(
                    start=pendulum.datetime(2025, 1, 6, 9, 0, tz=TZ),
                    end=pendulum.datetime(2025, 1, 6, 12, 0, tz=TZ),
                ),
            ],
        )

        assert all(s.available for s in slots)

    def test_slots_sorted_by_time_and_stable_across_staff(self):
        calculator = AvailabilityCalculator(timezone=TZ)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(15),
            schedules=[
                _schedule("dr-a", start=(9, 0), end=(10, 0)),
                _schedule("dr-b", start=(9, 30), end=(10, 30)),
            ],
            booked=[],
        )

        assert [(s.time, s.staff_id) for s in slots] == [
            ("09:00", "dr-a"),
            ("09:15", "dr-a"),
            ("09:30", "dr-a"),
            ("09:30", "dr-b"),
            ("09:45", "dr-a"),
            ("09:45", "dr-b"),
            ("10:00", "dr-b"),
            ("10:15", "dr-b"),
        ]

    def test_calculation_is_deterministic(self):
        calculator = AvailabilityCalculator(timezone=TZ)
        kwargs = dict(
            day=MONDAY,
            appointment_type=_type(20),
            schedules=[_schedule("dr-b"), _schedule("dr-a", break_start=time(10, 0), break_end=time(10, 30))],
            booked=[_booking("dr-a", (9, 30), (9, 45))],
        )

        assert calculator.calculate(**kwargs) == calculator.calculate(**kwargs)

    def test_slot_carries_staff_name_and_location(self):
        calculator = AvailabilityCalculator(timezone=TZ)

        slots = calculator.calculate(
            day=MONDAY,
            appointment_type=_type(15),
            schedules=[_schedule(staff_name="Dr. Jansen", end=(9, 15))],
            booked=[],
        )

        assert len(slots) == 1
        assert slots[0].to_dict() == {
            "time": "09:00",
            "available": True,
            "doctor_id": "dr-a",
            "doctor_name": "Dr. Jansen",
            "appointment_type_id": "type-15",
            "location_id": "loc-1",
        }
