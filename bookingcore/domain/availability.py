"""
Core business logic for calculating bookable appointment slots.

Pure domain logic: schedules, bookings and the appointment type are passed
in, nothing is fetched here.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, Iterator, List

import pendulum
from pendulum import DateTime

from .models import (
    SLOT_GRANULARITY_MINUTES,
    AppointmentType,
    BookedInterval,
    TimeRange,
    TimeSlot,
    WorkingSchedule,
)


def day_of_week(day: date) -> int:
    """ISO weekday of a date: Monday=1 ... Sunday=7."""
    return day.isoweekday()


def format_minutes(minutes: int) -> str:
    """Format minutes after midnight as HH:MM."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class AvailabilityCalculator:
    """
    Turns a day's working schedules and existing bookings into time slots.

    Algorithm:
    1. Keep the active schedules for the date's ISO weekday
    2. Enumerate candidate starts every 15 minutes from opening time
    3. Drop candidates that touch the schedule's break
    4. Mark a candidate unavailable when its service window overlaps a
       booking of the same staff member
    5. Sort all slots by time of day (stable across staff)
    """

    def __init__(self, timezone: str = "Europe/Amsterdam", clip_to_schedule_end: bool = True):
        self.timezone = timezone
        self.clip_to_schedule_end = clip_to_schedule_end

    def calculate(
        self,
        day: date,
        appointment_type: AppointmentType,
        schedules: Iterable[WorkingSchedule],
        booked: Iterable[BookedInterval],
    ) -> List[TimeSlot]:
        """
        Compute every candidate slot for ``day``.

        Args:
            day: The requested calendar date
            appointment_type: Determines the service window length
            schedules: Working schedules to consider
            booked: Existing non-cancelled bookings on that date

        Returns:
            TimeSlots sorted by HH:MM; empty when no schedule applies
        """
        weekday = day_of_week(day)
        duration = appointment_type.duration_minutes
        busy_by_staff = self._group_by_staff(booked)

        slots: List[TimeSlot] = []

        for schedule in schedules:
            if not schedule.is_active or schedule.day_of_week != weekday:
                continue

            busy = busy_by_staff.get(schedule.staff_id, [])

            for minute in self._candidate_minutes(schedule, duration):
                start = self._at(day, minute)
                window = TimeRange(start=start, end=start.add(minutes=duration))

                slots.append(
                    TimeSlot(
                        time=format_minutes(minute),
                        available=not any(window.overlaps(b) for b in busy),
                        staff_id=schedule.staff_id,
                        staff_name=schedule.staff_name,
                        appointment_type_id=appointment_type.id,
                        location_id=schedule.location_id,
                    )
                )

        # sorted() is stable, so staff sharing a time keep schedule order
        return sorted(slots, key=lambda slot: slot.time)

    def _candidate_minutes(self, schedule: WorkingSchedule, duration: int) -> Iterator[int]:
        """
        Yield candidate start times (minutes after midnight) for a schedule.

        A candidate occupies at least one granularity step; if that step or
        the service window reaches into the break, it is skipped.
        """
        opening = schedule.start_minute()
        closing = schedule.end_minute()
        break_window = schedule.break_minutes()

        for minute in range(opening, closing, SLOT_GRANULARITY_MINUTES):
            if self.clip_to_schedule_end and minute + duration > closing:
                continue

            if break_window:
                break_start, break_end = break_window
                occupied_end = minute + max(SLOT_GRANULARITY_MINUTES, duration)
                if minute < break_end and occupied_end > break_start:
                    continue

            yield minute

    def _at(self, day: date, minute: int) -> DateTime:
        return pendulum.datetime(
            day.year,
            day.month,
            day.day,
            minute // 60,
            minute % 60,
            tz=self.timezone,
        )

    @staticmethod
    def _group_by_staff(booked: Iterable[BookedInterval]) -> Dict[str, List[TimeRange]]:
        grouped: Dict[str, List[TimeRange]] = defaultdict(list)
        for interval in booked:
            if interval.staff_id is None:
                continue
            grouped[interval.staff_id].append(interval.as_range())
        return grouped
