# backend/agenda/services/intervals.py
"""
Interval helpers shared by the stores and the generator.

Times travel as "HH:MM" strings and are compared as minute-of-day offsets.
Dates travel as "YYYY-MM-DD" strings.
"""

import re
from datetime import date, datetime, timedelta
from typing import Iterator

from ..errors import (
    InvalidDateFormatError,
    InvalidRangeError,
    InvalidTimeFormatError,
)

TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MINUTES_PER_DAY = 24 * 60


def parse_time(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    if not isinstance(value, str) or not TIME_RE.match(value):
        raise InvalidTimeFormatError(
            f"Invalid time format: {value}. Expected format: HH:MM"
        )
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_time(minutes: int) -> str:
    """Convert minutes since midnight to zero-padded "HH:MM"."""
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def normalize_time(value: str) -> str:
    """Validate and zero-pad a time ("9:05" -> "09:05")."""
    return format_time(parse_time(value))


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open overlap: touching endpoints do not overlap."""
    return a_start < b_end and b_start < a_end


def validate_range(start, end) -> None:
    if start >= end:
        raise InvalidRangeError("Start time must be before end time")


def validate_time_range(start_time: str, end_time: str) -> None:
    validate_range(parse_time(start_time), parse_time(end_time))


def parse_date(value: str) -> date:
    """Parse "YYYY-MM-DD" into a real calendar date."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise InvalidDateFormatError(
            f"Invalid date format: {value}. Expected format: YYYY-MM-DD"
        )
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise InvalidDateFormatError(f"Invalid date: {value}") from None


def normalize_date(value) -> str:
    return parse_date(value).isoformat()


def date_range(start: date, end: date) -> Iterator[date]:
    """Yield every date in [start, end]."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def sunday_based_weekday(value: date) -> int:
    """Weekday number with 0 = Sunday, 1 = Monday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7
