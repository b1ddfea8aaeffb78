"""MSYNC — Date Key Helpers.

Date keys are plain ``YYYY-MM-DD`` strings. Time zone arithmetic happens
only here and at the metrics-source query boundary.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, List, Optional, Tuple
from zoneinfo import ZoneInfo

from app.config import settings
from app.core.errors import PermanentInputError

DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def source_tz() -> ZoneInfo:
    return ZoneInfo(settings.source_timezone)


def parse_date_key(value: Optional[str]) -> date:
    """Parse a strict YYYY-MM-DD key or raise PermanentInputError."""
    if not value or not DATE_KEY_RE.match(value):
        raise PermanentInputError(f"Malformed date key: {value!r} (expected YYYY-MM-DD)")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise PermanentInputError(f"Invalid calendar date: {value!r}") from e


def validate_date_key(value: Optional[str]) -> str:
    parse_date_key(value)
    return value  # type: ignore[return-value]


def to_key(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def iter_date_keys(start: str, end: str) -> Iterator[str]:
    """Yield every calendar day in [start, end] ascending."""
    current = parse_date_key(start)
    stop = parse_date_key(end)
    if current > stop:
        raise PermanentInputError(f"Start date {start} is after end date {end}")
    while current <= stop:
        yield to_key(current)
        current += timedelta(days=1)


def date_range(start: str, end: str) -> List[str]:
    return list(iter_date_keys(start, end))


def now_local(tz: Optional[ZoneInfo] = None) -> datetime:
    return datetime.now(tz or source_tz())


def today_key(tz: Optional[ZoneInfo] = None) -> str:
    return to_key(now_local(tz).date())


def yesterday_key(tz: Optional[ZoneInfo] = None) -> str:
    return to_key(now_local(tz).date() - timedelta(days=1))


def timestamp_now(tz: Optional[ZoneInfo] = None) -> str:
    """Update-time stamp written into the trailing sheet column."""
    return now_local(tz).strftime(TIMESTAMP_FORMAT)


def day_bounds_utc(date_key: str, tz: Optional[ZoneInfo] = None) -> Tuple[datetime, datetime]:
    """Local-calendar day [00:00, next 00:00) as UTC-aware datetimes."""
    tz = tz or source_tz()
    day = parse_date_key(date_key)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def range_bounds_utc(
    start_key: str, end_key: str, tz: Optional[ZoneInfo] = None
) -> Tuple[datetime, datetime]:
    """Inclusive local-calendar range as a half-open UTC interval."""
    if parse_date_key(start_key) > parse_date_key(end_key):
        raise PermanentInputError(f"Start date {start_key} is after end date {end_key}")
    start, _ = day_bounds_utc(start_key, tz)
    _, end = day_bounds_utc(end_key, tz)
    return start, end
