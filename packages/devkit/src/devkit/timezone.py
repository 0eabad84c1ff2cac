from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

DEFAULT_REPORTING_TIMEZONE = "UTC"


def reporting_zone(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or DEFAULT_REPORTING_TIMEZONE)


def to_zone(value: datetime, zone: ZoneInfo) -> datetime:
    """Express ``value`` in ``zone``; naive values are read as wall-clock time there."""
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def floor_to_day(value: datetime, zone: ZoneInfo) -> date:
    return to_zone(value, zone).date()


def days_in_month(year: int, month: int) -> list[date]:
    _, last_day = calendar.monthrange(year, month)
    return [date(year, month, day) for day in range(1, last_day + 1)]


def month_bounds(year: int, month: int, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """Half-open ``[first midnight, next month's first midnight)`` in ``zone``."""
    start = datetime.combine(date(year, month, 1), time.min, tzinfo=zone)
    last = days_in_month(year, month)[-1]
    end = datetime.combine(last + timedelta(days=1), time.min, tzinfo=zone)
    return start, end


def now_in_zone(zone: ZoneInfo) -> datetime:
    return datetime.now(zone)


def previous_month(day: datetime | date) -> tuple[int, int]:
    if day.month == 1:
        return day.year - 1, 12
    return day.year, day.month - 1
