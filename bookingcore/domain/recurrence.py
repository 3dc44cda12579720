"""
Expansion of a recurring session template into concrete instances.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional

from pendulum import DateTime

from .exceptions import ValidationError
from .models import RecurrenceType, SessionInstance, SessionTemplate

_DAY_STEPS = {
    RecurrenceType.DAILY: 1,
    RecurrenceType.WEEKLY: 7,
    RecurrenceType.BIWEEKLY: 14,
}


def _as_date(value: Optional[date]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def validate_recurrence(
    recurrence_type: "RecurrenceType | str | None",
    series_end_date: Optional[date],
    start_date: date,
) -> RecurrenceType:
    """
    Check the preconditions for expanding a series.

    Returns the parsed recurrence type so callers can short-circuit on
    ``RecurrenceType.NONE``.

    Raises:
        ValidationError: If the type is unknown, the end date is missing or
            the end date lies before the first occurrence
    """
    recurrence = RecurrenceType.parse(recurrence_type)
    if recurrence is RecurrenceType.NONE:
        return recurrence

    series_end_date = _as_date(series_end_date)

    if series_end_date is None:
        raise ValidationError("recurring sessions require an end date")

    if series_end_date < start_date:
        raise ValidationError(
            f"Series end date {series_end_date} lies before the first session on {start_date}"
        )

    return recurrence


def occurrence_start(start: DateTime, recurrence: RecurrenceType, index: int) -> DateTime:
    """
    Start of the ``index``-th occurrence after ``start`` (index 1 is the first repeat).

    Monthly steps are counted from the template so that day-of-month clamping
    in short months (Jan 31 -> Feb 28) does not carry into later months.
    """
    if recurrence is RecurrenceType.MONTHLY:
        return start.add(months=index)
    if recurrence in _DAY_STEPS:
        return start.add(days=_DAY_STEPS[recurrence] * index)
    raise ValidationError(f"Recurrence type '{recurrence.value}' has no interval")


def expand_recurrence(
    template: SessionTemplate,
    recurrence_type: "RecurrenceType | str | None",
    series_end_date: Optional[date],
) -> List[SessionInstance]:
    """
    Generate the instances that follow ``template`` up to ``series_end_date``.

    The template's own occurrence is not part of the result. Each instance
    keeps the template's duration and staff and points back to it through
    ``parent_session_id``.

    Args:
        template: The persisted first occurrence (must have an id)
        recurrence_type: none, daily, weekly, biweekly or monthly
        series_end_date: Inclusive last date on which an instance may start

    Returns:
        Instances in chronological order
    """
    recurrence = validate_recurrence(
        recurrence_type, series_end_date, template.start_time.date()
    )
    if recurrence is RecurrenceType.NONE:
        return []

    end_date = _as_date(series_end_date)

    if template.id is None:
        raise ValidationError("Template session must be persisted before it can be expanded")

    duration = timedelta(seconds=(template.end_time - template.start_time).total_seconds())
    instances: List[SessionInstance] = []

    index = 1
    cursor = occurrence_start(template.start_time, recurrence, index)

    while cursor.date() <= end_date:
        instances.append(
            SessionInstance(
                title=template.title,
                description=template.description,
                group_id=template.group_id,
                patient_id=template.patient_id,
                location_id=template.location_id,
                start_time=cursor,
                end_time=cursor + duration,
                parent_session_id=template.id,
                recurrence_type=recurrence,
                staff_ids=template.staff_ids,
                created_by=template.created_by,
            )
        )
        index += 1
        cursor = occurrence_start(template.start_time, recurrence, index)

    return instances
