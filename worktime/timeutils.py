"""Calendar-date and clock-time helpers.

Day arithmetic runs on proleptic Gregorian ordinals so results never depend on
timezones or daylight-saving transitions.
"""

from __future__ import annotations

import calendar
import re
from datetime import date
from typing import Optional, Tuple

from .errors import InvalidDate, InvalidTime

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")

DAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def parse_date(value: object, field: str = "date") -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value.strip()):
        raise InvalidDate(f"{field} must be a date in YYYY-MM-DD format.", field=field)
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidDate(f"{field} is not a valid calendar date.", field=field) from None


def parse_optional_date(value: object, field: str = "date") -> Optional[date]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_date(value, field)


def validate_time(value: object, field: str = "time") -> str:
    time_to_minutes(value, field)
    return str(value).strip()


def time_to_minutes(value: object, field: str = "time", lenient: bool = False) -> int:
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours < 24 and minutes < 60:
            return hours * 60 + minutes
    if lenient:
        return 0
    raise InvalidTime(f"{field} must be a time in HH:MM format.", field=field)


def add_days(day: date, days: int, field: str = "date") -> date:
    try:
        return date.fromordinal(day.toordinal() + days)
    except (ValueError, OverflowError):
        raise InvalidDate(f"{field} is outside the supported calendar range.", field=field) from None


def week_start(day: date) -> date:
    return add_days(day, -day.weekday())


def weekday_index(day: date) -> int:
    # Monday=0 ... Sunday=6
    return day.weekday()


def month_bounds(day: date) -> Tuple[date, date]:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def days_between(start: date, end: date) -> int:
    return end.toordinal() - start.toordinal()


def format_short_date(day: date, with_year: bool = False) -> str:
    label = f"{DAY_LABELS[day.weekday()]} {day.day:02d} {MONTH_LABELS[day.month - 1]}"
    if with_year:
        label = f"{label} {day.year % 100:02d}"
    return label
