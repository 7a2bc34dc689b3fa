from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Optional


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_hhmm(value: str) -> time:
    """Parse HH:MM (or HH:MM:SS) string into time."""
    v = value.strip()
    fmt = "%H:%M:%S" if v.count(":") == 2 else "%H:%M"
    return datetime.strptime(v, fmt).time()


def now_local() -> datetime:
    """Current local time; services take this as their default clock."""
    return datetime.now()


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def iter_days_desc(start: date, end: date):
    d = end
    while d >= start:
        yield d
        d -= timedelta(days=1)


def days_until(target: date, today: date) -> int:
    """Whole calendar days from today to target (negative when past)."""
    return (target - today).days


def format_duration(delta: timedelta) -> Optional[str]:
    """Format a duration as "4h 30m", "45m" or "4h".

    Negative durations are not formatted here; callers decide how to report
    bad data.
    """
    if delta < timedelta(0):
        return None
    total_minutes = int(delta.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"
