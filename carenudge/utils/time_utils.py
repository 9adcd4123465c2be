"""Time and timezone utilities."""

import re
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

from carenudge.utils.constants import DEFAULT_WEEKDAY_HOUR, WEEKDAY_NAMES

TIME_OF_DAY_PATTERN = re.compile(
    r"^(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\s*([ap])\.?m\.?)?$", re.IGNORECASE
)
BARE_TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")
ISO_LIKE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")


def to_local(dt: datetime, tz: str) -> datetime:
    """Convert a datetime to the given timezone.

    Naive datetimes are taken to already be local wall time.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(tz))
    return dt.astimezone(ZoneInfo(tz))


def normalize_time_of_day(value: str | None) -> str | None:
    """Normalize a time-of-day string to HH:MM:SS (24-hour).

    Accepts H:MM, HH:MM and HH:MM:SS, each optionally followed by AM/PM.
    Returns None for anything unparseable or out of range.

    Examples:
        "8:05" -> "08:05:00"
        "7:30 pm" -> "19:30:00"
        "12:00 AM" -> "00:00:00"
    """
    if not value or not isinstance(value, str):
        return None

    match = TIME_OF_DAY_PATTERN.match(value.strip())
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2))
    second = int(match.group(3) or 0)
    meridiem = match.group(4)

    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12
        if meridiem.lower() == "p":
            hour += 12
    elif hour > 23:
        return None

    if minute > 59 or second > 59:
        return None

    return f"{hour:02d}:{minute:02d}:{second:02d}"


def parse_time_of_day(value: str | None) -> time | None:
    """Parse a time-of-day string into a time object."""
    normalized = normalize_time_of_day(value)
    if normalized is None:
        return None
    return time.fromisoformat(normalized)


def is_bare_time_of_day(value: str) -> bool:
    """Whether the string is HH:MM or HH:MM:SS with nothing else."""
    return bool(BARE_TIME_PATTERN.match(value.strip()))


def looks_like_iso(value: str) -> bool:
    """Permissive check for an ISO-like date-time string."""
    return bool(ISO_LIKE_PATTERN.search(value))


def parse_timestamp(value: datetime | str | None, tz: str) -> datetime | None:
    """Parse an explicit timestamp into a timezone-aware datetime.

    Routine tokens and other non-timestamps return None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_local(value, tz)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = isoparse(value.strip())
    except (ValueError, OverflowError):
        return None
    return to_local(parsed, tz)


def combine_date_with_time_of_day(
    date_ref: datetime, time_of_day: str, tz: str
) -> datetime | None:
    """Keep the local calendar date of date_ref, replace its wall-clock time.

    Returns None if time_of_day cannot be parsed.
    """
    parsed = parse_time_of_day(time_of_day)
    if parsed is None:
        return None

    local = to_local(date_ref, tz)
    return local.replace(
        hour=parsed.hour, minute=parsed.minute, second=parsed.second, microsecond=0
    )


def at_time_of_day(day: date, time_of_day: str, tz: str) -> datetime | None:
    """Build a local datetime for a calendar day and a time-of-day string."""
    parsed = parse_time_of_day(time_of_day)
    if parsed is None:
        return None
    return datetime.combine(day, parsed).replace(tzinfo=ZoneInfo(tz))


def next_time_of_day_after(ref: datetime, time_of_day: str, tz: str) -> datetime | None:
    """Next occurrence of a time-of-day strictly after ref.

    Today's occurrence if it is still ahead, otherwise tomorrow's.
    """
    local_ref = to_local(ref, tz)
    candidate = at_time_of_day(local_ref.date(), time_of_day, tz)
    if candidate is None:
        return None
    if candidate <= local_ref:
        candidate = at_time_of_day(local_ref.date() + timedelta(days=1), time_of_day, tz)
    return candidate


def parse_weekday(value: str) -> int | None:
    """Match a weekday name or an abbreviation of at least three letters.

    Examples:
        "Friday" -> 4
        "thu" -> 3
        "Tues" -> 1
    """
    text = value.strip().lower()
    if len(text) < 3:
        return None
    for name, index in WEEKDAY_NAMES.items():
        if name.startswith(text):
            return index
    return None


def next_weekday_on_or_after(
    ref: datetime, weekday: int, tz: str, hour: int = DEFAULT_WEEKDAY_HOUR
) -> datetime:
    """Next date falling on weekday, at the given local hour.

    The result is always on a later calendar day: asking for today's weekday
    returns the same weekday next week.
    """
    local_ref = to_local(ref, tz)
    days_ahead = (weekday - local_ref.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7

    target_day = local_ref.date() + timedelta(days=days_ahead)
    return datetime.combine(target_day, time(hour, 0)).replace(tzinfo=ZoneInfo(tz))


def local_date_str(dt: datetime, tz: str) -> str:
    """Local calendar date as YYYY-MM-DD."""
    return to_local(dt, tz).date().isoformat()


def time_of_day_str(dt: datetime, tz: str) -> str:
    """Local wall-clock time as HH:MM:SS."""
    return to_local(dt, tz).strftime("%H:%M:%S")


def format_duration(minutes: int) -> str:
    """Format minutes into a human-readable duration.

    Examples:
        15 -> "15 minutes"
        60 -> "1 hour"
        90 -> "1.5 hours"
        1440 -> "1 day"
    """
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    elif minutes < 1440:
        hours = minutes / 60
        if hours == int(hours):
            return f"{int(hours)} hour{'s' if hours != 1 else ''}"
        return f"{hours:.1f} hours"
    else:
        days = minutes / 1440
        if days == int(days):
            return f"{int(days)} day{'s' if days != 1 else ''}"
        return f"{days:.1f} days"


def format_relative_time(dt: datetime, now: datetime) -> str:
    """Format a datetime relative to now.

    Examples:
        "in 5 minutes"
        "in 2 hours"
        "tomorrow"
        "2 hours ago"
    """
    total_seconds = (dt - now).total_seconds()

    if total_seconds < 0:
        abs_seconds = abs(total_seconds)
        if abs_seconds < 3600:
            minutes = int(abs_seconds / 60)
            return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
        elif abs_seconds < 86400:
            hours = int(abs_seconds / 3600)
            return f"{hours} hour{'s' if hours != 1 else ''} ago"
        else:
            days = int(abs_seconds / 86400)
            return f"{days} day{'s' if days != 1 else ''} ago"
    else:
        if total_seconds < 3600:
            minutes = int(total_seconds / 60)
            return f"in {minutes} minute{'s' if minutes != 1 else ''}"
        elif total_seconds < 86400:
            hours = int(total_seconds / 3600)
            return f"in {hours} hour{'s' if hours != 1 else ''}"
        elif total_seconds < 172800:  # 2 days
            return "tomorrow"
        else:
            days = int(total_seconds / 86400)
            return f"in {days} days"
