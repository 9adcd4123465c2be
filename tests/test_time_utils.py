"""Tests for time utilities."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from carenudge.utils.time_utils import (
    at_time_of_day,
    combine_date_with_time_of_day,
    format_duration,
    format_relative_time,
    next_time_of_day_after,
    next_weekday_on_or_after,
    normalize_time_of_day,
    parse_timestamp,
    parse_weekday,
    to_local,
)

UTC = ZoneInfo("UTC")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("8:05", "08:05:00"),
        ("08:05", "08:05:00"),
        ("08:05:30", "08:05:30"),
        ("7:30 pm", "19:30:00"),
        ("7:30PM", "19:30:00"),
        ("12:00 AM", "00:00:00"),
        ("12:15 pm", "12:15:00"),
        ("11:59:59 p.m.", "23:59:59"),
        ("0:00", "00:00:00"),
        ("23:59", "23:59:00"),
    ],
)
def test_normalize_time_of_day_valid(raw, expected):
    """Valid inputs normalize to HH:MM:SS and re-normalizing is a fixed point."""
    normalized = normalize_time_of_day(raw)
    assert normalized == expected
    assert normalize_time_of_day(normalized) == normalized


@pytest.mark.parametrize(
    "raw",
    ["", None, "24:00", "12:60", "10:00:60", "13:00 pm", "0:30 am", "noon", "8", "8:5", "08:00 xm"],
)
def test_normalize_time_of_day_invalid(raw):
    """Out-of-range and malformed values are rejected."""
    assert normalize_time_of_day(raw) is None


def test_combine_date_keeps_date_and_replaces_time():
    """The calendar date is kept and only the wall-clock time changes."""
    ref = datetime(2026, 3, 5, 22, 47, 13, 500, tzinfo=UTC)
    combined = combine_date_with_time_of_day(ref, "09:00", "UTC")

    assert combined == datetime(2026, 3, 5, 9, 0, tzinfo=UTC)
    assert combine_date_with_time_of_day(ref, "nope", "UTC") is None


def test_combine_date_uses_local_date():
    """A UTC instant late in the evening is still "yesterday" in Toronto."""
    ref = datetime(2026, 3, 6, 2, 0, tzinfo=UTC)  # 21:00 on Mar 5 in Toronto
    combined = combine_date_with_time_of_day(ref, "08:00", "America/Toronto")

    assert combined.date() == date(2026, 3, 5)
    assert combined.hour == 8
    assert combined.tzinfo == ZoneInfo("America/Toronto")


def test_next_time_of_day_after():
    """Today's occurrence if still ahead, otherwise tomorrow's."""
    ref = datetime(2026, 3, 2, 8, 30, tzinfo=UTC)

    assert next_time_of_day_after(ref, "12:30:00", "UTC") == datetime(2026, 3, 2, 12, 30, tzinfo=UTC)
    assert next_time_of_day_after(ref, "08:00:00", "UTC") == datetime(2026, 3, 3, 8, 0, tzinfo=UTC)
    # Exactly now is not strictly after
    assert next_time_of_day_after(ref, "08:30:00", "UTC") == datetime(2026, 3, 3, 8, 30, tzinfo=UTC)


def test_at_time_of_day():
    assert at_time_of_day(date(2026, 3, 2), "21:00:00", "UTC") == datetime(2026, 3, 2, 21, 0, tzinfo=UTC)
    assert at_time_of_day(date(2026, 3, 2), "bad", "UTC") is None


def test_parse_weekday():
    """Full names and abbreviations of three or more letters."""
    assert parse_weekday("Friday") == 4
    assert parse_weekday("thu") == 3
    assert parse_weekday("Tues") == 1
    assert parse_weekday("MON") == 0
    assert parse_weekday("mo") is None
    assert parse_weekday("lunch") is None


def test_next_weekday_is_strictly_future():
    """Same weekday today maps to next week."""
    monday = datetime(2026, 3, 2, 7, 0, tzinfo=UTC)

    assert next_weekday_on_or_after(monday, 0, "UTC") == datetime(2026, 3, 9, 9, 0, tzinfo=UTC)
    assert next_weekday_on_or_after(monday, 4, "UTC") == datetime(2026, 3, 6, 9, 0, tzinfo=UTC)
    assert next_weekday_on_or_after(monday, 6, "UTC", hour=18) == datetime(2026, 3, 8, 18, 0, tzinfo=UTC)


def test_parse_timestamp():
    """ISO strings parse; naive values are treated as local time."""
    aware = parse_timestamp("2026-03-02T09:00:00+00:00", "America/Toronto")
    assert aware == datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
    assert aware.tzinfo == ZoneInfo("America/Toronto")

    naive = parse_timestamp("2026-03-02 09:00", "America/Toronto")
    assert naive.hour == 9
    assert naive.tzinfo == ZoneInfo("America/Toronto")

    assert parse_timestamp("routine:breakfast", "UTC") is None
    assert parse_timestamp("", "UTC") is None
    assert parse_timestamp(None, "UTC") is None


def test_to_local():
    """Aware values convert; naive values are labelled."""
    dt = datetime(2026, 3, 15, 18, 30, tzinfo=UTC)
    assert to_local(dt, "America/New_York").hour == 14  # EDT is UTC-4

    naive = datetime(2026, 3, 15, 18, 30)
    assert to_local(naive, "America/New_York").hour == 18


def test_format_duration():
    """Test duration formatting."""
    assert format_duration(1) == "1 minute"
    assert format_duration(15) == "15 minutes"
    assert format_duration(60) == "1 hour"
    assert format_duration(90) == "1.5 hours"
    assert format_duration(1440) == "1 day"
    assert format_duration(2880) == "2 days"


def test_format_relative_time():
    """Test relative time formatting."""
    now = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

    assert format_relative_time(datetime(2026, 3, 15, 12, 30, tzinfo=UTC), now) == "in 30 minutes"
    assert format_relative_time(datetime(2026, 3, 15, 14, 0, tzinfo=UTC), now) == "in 2 hours"
    assert format_relative_time(datetime(2026, 3, 16, 14, 0, tzinfo=UTC), now) == "tomorrow"
    assert format_relative_time(datetime(2026, 3, 15, 10, 0, tzinfo=UTC), now) == "2 hours ago"
