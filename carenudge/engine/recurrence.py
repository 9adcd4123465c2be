"""Daily and weekly recurrence."""

from datetime import datetime, timedelta
from typing import Iterable, List

from dateutil.rrule import WEEKLY, rrule

from carenudge.utils.time_utils import parse_weekday

DAY = timedelta(days=1)
WEEK = timedelta(days=7)


def parse_repeat_days(repeat_days: Iterable | None) -> List[int]:
    """Weekday tokens ("Mon", "tuesday", 2) -> sorted Monday=0 indexes.

    Integers are taken as Python weekday numbers. Unknown tokens are dropped.
    """
    if not repeat_days:
        return []

    indexes = set()
    for day in repeat_days:
        if isinstance(day, int) and 0 <= day <= 6:
            indexes.add(day)
        elif isinstance(day, str):
            index = parse_weekday(day)
            if index is not None:
                indexes.add(index)
    return sorted(indexes)


def _first_listed_weekday_after(current: datetime, weekdays: List[int]) -> datetime:
    """Smallest forward offset to a listed weekday; the same weekday means +7."""
    rule = rrule(
        WEEKLY,
        dtstart=current,
        byweekday=weekdays,  # ints, Monday=0 like dateutil.rrule.MO
    )
    next_date = rule.after(current)
    if next_date is None:
        raise ValueError("No next occurrence found")

    # rrule keeps dtstart's tzinfo, but be explicit for naive/aware mixes
    if next_date.tzinfo is None and current.tzinfo is not None:
        next_date = next_date.replace(tzinfo=current.tzinfo)
    return next_date


def get_next_occurrence(
    current: datetime,
    frequency_type: str | None,
    repeat_days: Iterable | None,
    now: datetime,
) -> datetime | None:
    """Next occurrence of a recurring reminder strictly after now.

    Args:
        current: The reminder's current due time (timezone-aware)
        frequency_type: "daily" or "weekly"; anything else does not recur
        repeat_days: Weekday tokens for weekly reminders
        now: Current time

    Returns:
        The next due time, or None for non-recurring reminders
    """
    freq = (frequency_type or "").lower()

    if freq == "daily":
        step = DAY
        next_due = current + DAY
    elif freq == "weekly":
        step = WEEK
        weekdays = parse_repeat_days(repeat_days)
        if weekdays:
            next_due = _first_listed_weekday_after(current, weekdays)
        else:
            next_due = current + WEEK
    else:
        return None

    while next_due <= now:
        next_due += step

    return next_due
