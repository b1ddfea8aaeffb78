from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from app.core.dates import (
    date_range,
    day_bounds_utc,
    parse_date_key,
    range_bounds_utc,
    today_key,
    yesterday_key,
)
from app.core.errors import PermanentInputError

SEOUL = ZoneInfo("Asia/Seoul")


@pytest.mark.parametrize("value", ["2025-9-15", "20250915", "", None, "2025-02-30", "2025-13-01"])
def test_malformed_keys_are_permanent_errors(value):
    with pytest.raises(PermanentInputError):
        parse_date_key(value)


def test_date_range_is_inclusive_and_ascending():
    assert date_range("2025-08-30", "2025-09-02") == [
        "2025-08-30",
        "2025-08-31",
        "2025-09-01",
        "2025-09-02",
    ]
    assert date_range("2025-09-15", "2025-09-15") == ["2025-09-15"]


def test_reversed_range_is_rejected():
    with pytest.raises(PermanentInputError):
        date_range("2025-09-16", "2025-09-15")


def test_day_bounds_follow_local_calendar():
    start, end = day_bounds_utc("2025-09-15", SEOUL)

    # Seoul is UTC+9 with no DST
    assert start == datetime(2025, 9, 14, 15, 0, tzinfo=timezone.utc)
    assert end == datetime(2025, 9, 15, 15, 0, tzinfo=timezone.utc)


def test_range_bounds_cover_whole_days():
    start, end = range_bounds_utc("2025-09-01", "2025-09-03", SEOUL)

    assert start == datetime(2025, 8, 31, 15, 0, tzinfo=timezone.utc)
    assert end == datetime(2025, 9, 3, 15, 0, tzinfo=timezone.utc)


def test_yesterday_is_one_day_before_today():
    today = parse_date_key(today_key(SEOUL))
    yesterday = parse_date_key(yesterday_key(SEOUL))

    assert (today - yesterday).days == 1
