"""
Kickoff date helpers.

Weekdays follow Python's convention: 0 = Monday ... 6 = Sunday.
Time strings are "HH:MM" (24h).
"""
import re
from datetime import datetime, timedelta
from typing import Optional

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_match_time(value: Optional[str]) -> Optional[tuple]:
    """Return (hour, minute) for a valid "HH:MM" string, else None."""
    if not value:
        return None
    m = _TIME_RE.match(value.strip())
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def apply_time(dt: datetime, match_time: Optional[str]) -> datetime:
    parsed = parse_match_time(match_time)
    if parsed is None:
        return dt
    hour, minute = parsed
    return dt.replace(hour=hour, minute=minute, second=0, microsecond=0)


def align_to_weekday(dt: datetime, weekday: Optional[int]) -> datetime:
    """Move dt forward (0-6 days) to the requested weekday. Same day is kept."""
    if weekday is None:
        return dt
    delta = (weekday - dt.weekday()) % 7
    return dt + timedelta(days=delta)


def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)


def time_of(dt: datetime) -> str:
    """Kickoff time of dt as "HH:MM"."""
    return dt.strftime("%H:%M")
