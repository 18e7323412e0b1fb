"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, time, timezone, tzinfo
from typing import List
from zoneinfo import ZoneInfo

from peanuts_budget.config import settings


def get_timezone(name: str | None = None) -> tzinfo:
    """Resolve the configured calendar timezone"""
    name = name or settings.timezone
    if name.upper() in ("UTC", "Z"):
        return timezone.utc
    return ZoneInfo(name)


def local_day(value: date | datetime, tz: tzinfo | None = None) -> date:
    """
    Calendar day a stored date or instant falls on.

    Aware datetimes are converted into the calendar timezone first, so an
    instant written as "2024-01-14T23:00:00Z" by a UTC+1 host still lands on
    Jan 15 when the ledger is configured for that zone. Naive datetimes are
    taken as already being wall-clock values.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz or get_timezone())
        return value.date()
    return value


def start_of_day(value: date | datetime, tz: tzinfo | None = None) -> datetime:
    """Aware midnight of the calendar day of `value`"""
    tz = tz or get_timezone()
    day = local_day(value, tz)
    return datetime.combine(day, time(), tzinfo=tz)


def floating_midnight(value: date | datetime) -> datetime:
    """
    Zone-free midnight rebuilt from the Y/M/D components of a calendar day.

    Recurrence rules are evaluated on these values so that no host or
    calendar offset can shift an occurrence onto the neighbouring day.
    """
    day = local_day(value)
    return datetime(day.year, day.month, day.day)


def start_of_month(value: date | datetime) -> date:
    day = local_day(value)
    return day.replace(day=1)


def end_of_month(value: date | datetime) -> date:
    """Last calendar day of the month containing `value`"""
    day = local_day(value)
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def is_same_month(a: date | datetime, b: date | datetime) -> bool:
    day_a = local_day(a)
    day_b = local_day(b)
    return (day_a.year, day_a.month) == (day_b.year, day_b.month)


def months_in_year(year: int) -> List[date]:
    """First day of each month of `year`"""
    return [date(year, month, 1) for month in range(1, 13)]


def parse_iso8601(value: str | date | datetime) -> datetime:
    """
    Parse an ISO-8601 date or timestamp as written on disk.

    Accepts full timestamps with a "Z" or numeric offset as well as bare
    dates ("2024-01-15"), which become naive midnights.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid ISO-8601 value: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def to_iso8601(value: date | datetime) -> str:
    """Format a date or instant the way documents store it (UTC, millisecond precision)"""
    if not isinstance(value, datetime):
        value = start_of_day(value)
    if value.tzinfo is None:
        return value.isoformat(timespec="milliseconds")
    utc_value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return utc_value.isoformat(timespec="milliseconds") + "Z"
