"""
Calendar helpers: the reference-timezone "today" window and trigger times.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class DayWindow:
    """Half-open [start, end) interval covering one calendar day in a timezone."""
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today_window(tz: ZoneInfo, now: Optional[datetime] = None) -> DayWindow:
    """Return [today 00:00, tomorrow 00:00) in tz, as aware datetimes."""
    now = now or utc_now()
    local_day = now.astimezone(tz).date()
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    end = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)
    return DayWindow(start=start, end=end)


def parse_start_time(value: Any) -> Optional[datetime]:
    """
    Parse a stored start_time (ISO string or datetime) into an aware UTC datetime.

    Naive values are taken as UTC. Returns None for missing or unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except (ValueError, TypeError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def next_daily_run(now: datetime, at: time, tz: ZoneInfo) -> datetime:
    """Next instant strictly after now whose local time in tz is `at`."""
    local_now = now.astimezone(tz)
    candidate = datetime.combine(local_now.date(), at, tzinfo=tz)
    if candidate <= local_now:
        candidate = datetime.combine(local_now.date() + timedelta(days=1), at, tzinfo=tz)
    return candidate


def next_top_of_hour(now: datetime) -> datetime:
    """Next HH:00:00 strictly after now."""
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def seconds_until(target: datetime, now: datetime) -> float:
    return max((target - now).total_seconds(), 0.0)
