# backend/gymbook/core/timeutils.py
"""
Calendar helpers for class sessions.

Session dates are local calendar strings (``YYYY-MM-DD``) in the gym's
timezone; weeks run Monday through Sunday.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

import pytz

from .constants import DATE_FORMAT, TIME_FORMAT
from .exceptions import ValidationException


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_date_string(date_string: str) -> date:
    try:
        return datetime.strptime(date_string, DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise ValidationException(f"Invalid session date: {date_string!r}")


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def get_week_range(date_string: str) -> Tuple[str, str]:
    """Return the Monday and Sunday date strings of the week containing ``date_string``."""
    day = parse_date_string(date_string)
    monday = day - timedelta(days=day.weekday())
    sunday = monday + timedelta(days=6)
    return format_date(monday), format_date(sunday)


def get_timezone(tz_name: Optional[str]) -> pytz.BaseTzInfo:
    try:
        return pytz.timezone(tz_name or "UTC")
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def session_start(date_string: str, time_string: Optional[str], tz_name: Optional[str]) -> datetime:
    """Absolute (UTC) start instant of a session given its local date and ``HH:MM`` time."""
    day = parse_date_string(date_string)
    try:
        clock = datetime.strptime(time_string, TIME_FORMAT).time() if time_string else time(0, 0)
    except ValueError:
        raise ValidationException(f"Invalid class time: {time_string!r}")
    local = get_timezone(tz_name).localize(datetime.combine(day, clock))
    return local.astimezone(timezone.utc)


def local_today(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    now = now or utcnow()
    return now.astimezone(get_timezone(tz_name)).date()


def ensure_aware(value: datetime) -> datetime:
    """SQLite returns naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
