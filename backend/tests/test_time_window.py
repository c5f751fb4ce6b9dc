# test_time_window.py

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from utils.time_window import (
    next_daily_run,
    next_top_of_hour,
    parse_start_time,
    seconds_until,
    today_window,
)

CHICAGO = ZoneInfo("America/Chicago")


def test_today_window_uses_reference_timezone():
    # 03:00 UTC on the 6th is still the 5th in Chicago
    now = datetime(2025, 1, 6, 3, 0, tzinfo=timezone.utc)
    window = today_window(CHICAGO, now)
    assert window.start == datetime(2025, 1, 5, tzinfo=CHICAGO)
    assert window.end == datetime(2025, 1, 6, tzinfo=CHICAGO)
    assert window.contains(now)
    assert not window.contains(window.end)


def test_today_window_across_dst_change():
    now = datetime(2025, 3, 9, 18, 0, tzinfo=timezone.utc)
    window = today_window(CHICAGO, now)
    span = window.end.astimezone(timezone.utc) - window.start.astimezone(timezone.utc)
    assert span == timedelta(hours=23)


@pytest.mark.parametrize("value, expected", [
    ("2025-01-05T18:00Z", datetime(2025, 1, 5, 18, 0, tzinfo=timezone.utc)),
    ("2025-01-05T12:00:00-06:00", datetime(2025, 1, 5, 18, 0, tzinfo=timezone.utc)),
    ("2025-01-05T18:00:00", datetime(2025, 1, 5, 18, 0, tzinfo=timezone.utc)),
    (datetime(2025, 1, 5, 18, 0), datetime(2025, 1, 5, 18, 0, tzinfo=timezone.utc)),
    (None, None),
    ("soon", None),
])
def test_parse_start_time(value, expected):
    assert parse_start_time(value) == expected


def test_next_daily_run_later_today():
    now = datetime(2025, 1, 5, 5, 0, tzinfo=timezone.utc)  # 23:00 on the 4th in Chicago
    target = next_daily_run(now, time(0, 5), CHICAGO)
    assert target == datetime(2025, 1, 5, 0, 5, tzinfo=CHICAGO)


def test_next_daily_run_is_strictly_after_now():
    now = datetime(2025, 1, 5, 0, 5, tzinfo=CHICAGO)
    target = next_daily_run(now, time(0, 5), CHICAGO)
    assert target == datetime(2025, 1, 6, 0, 5, tzinfo=CHICAGO)


def test_next_top_of_hour():
    now = datetime(2025, 1, 5, 18, 0, 0, tzinfo=timezone.utc)
    assert next_top_of_hour(now) == datetime(2025, 1, 5, 19, 0, tzinfo=timezone.utc)
    assert next_top_of_hour(now + timedelta(minutes=59, seconds=59)) == datetime(2025, 1, 5, 19, 0, tzinfo=timezone.utc)


def test_seconds_until_never_negative():
    now = datetime(2025, 1, 5, 18, 0, tzinfo=timezone.utc)
    assert seconds_until(now - timedelta(minutes=1), now) == 0.0
    assert seconds_until(now + timedelta(seconds=90), now) == 90.0
