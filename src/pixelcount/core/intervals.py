"""
Interval resolution.

Turns a dashboard interval token ("7d", "today", "yesterday", ...) plus an
IANA timezone into concrete UTC instants, and into the literal expressions
embedded in Analytics Engine SQL. The SQL API has no bind parameters, so
instants are rendered as `toDateTime('YYYY-MM-DD HH:MM:SS')` literals in UTC.
"""
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterator, NamedTuple

from ..config import resolve_timezone

_DAYS_TOKEN = re.compile(r"^(\d+)d$")

# Longest rolling window accepted, in days
MAX_INTERVAL_DAYS = 3650


class Granularity(str, Enum):
    """Bucket width for time series."""
    HOUR = "HOUR"
    DAY = "DAY"


class InvalidIntervalError(ValueError):
    """Raised for interval tokens outside the supported vocabulary."""
    pass


@dataclass(frozen=True)
class DateTimeRange:
    """Half-open [start, end) range of aware UTC instants."""
    start: datetime
    end: datetime


class IntervalSql(NamedTuple):
    start_sql: str
    end_sql: str


def as_utc(now: datetime | None) -> datetime:
    """Normalize to an aware UTC instant. Naive values are taken as UTC, None is the wall clock."""
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _parse_days(interval: str) -> int | None:
    match = _DAYS_TOKEN.match(interval or "")
    if not match:
        return None
    days = int(match.group(1))
    if days <= 0:
        raise InvalidIntervalError(f"Interval must be a positive number of days: {interval!r}")
    if days > MAX_INTERVAL_DAYS:
        raise InvalidIntervalError(
            f"Interval {interval!r} exceeds the maximum of {MAX_INTERVAL_DAYS} days"
        )
    return days


def validate_interval(interval: str) -> str:
    """Return the token unchanged, or raise InvalidIntervalError."""
    if interval in ("today", "yesterday"):
        return interval
    if _parse_days(interval) is None:
        raise InvalidIntervalError(
            f"Unknown interval {interval!r}. Use 'today', 'yesterday' or '<N>d'"
        )
    return interval


def get_interval_type(interval: str) -> Granularity:
    """Hourly buckets for single-day views, daily otherwise."""
    if interval in ("today", "yesterday", "1d"):
        return Granularity.HOUR
    return Granularity.DAY


def format_date_string(instant: datetime) -> str:
    """Render an instant as a UTC 'YYYY-MM-DD HH:MM:SS' string."""
    return as_utc(instant).strftime("%Y-%m-%d %H:%M:%S")


def start_of_day(instant: datetime, tz: tzinfo) -> datetime:
    """Midnight of the calendar day containing `instant` in `tz`, as UTC."""
    local_date = as_utc(instant).astimezone(tz).date()
    return datetime.combine(local_date, time(0), tzinfo=tz).astimezone(timezone.utc)


def align_to_granularity(instant: datetime, granularity: Granularity, tz: tzinfo) -> datetime:
    """Floor an instant to the start of its hour or (local) day."""
    if granularity == Granularity.DAY:
        return start_of_day(instant, tz)
    local = as_utc(instant).astimezone(tz)
    return local.replace(minute=0, second=0, microsecond=0).astimezone(timezone.utc)


def next_boundary(boundary: datetime, granularity: Granularity, tz: tzinfo) -> datetime:
    """Step one bucket forward. Days are calendar days, so DST days are 23h/25h."""
    if granularity == Granularity.HOUR:
        return boundary + timedelta(hours=1)
    local_date = boundary.astimezone(tz).date() + timedelta(days=1)
    return datetime.combine(local_date, time(0), tzinfo=tz).astimezone(timezone.utc)


def iter_boundaries(
    start: datetime,
    end: datetime,
    granularity: Granularity,
    tz: tzinfo,
) -> Iterator[datetime]:
    """Yield every bucket boundary from aligned `start` up to (not including) `end`."""
    boundary = align_to_granularity(start, granularity, tz)
    end = as_utc(end)
    while boundary < end:
        yield boundary
        boundary = next_boundary(boundary, granularity, tz)


def resolve_interval(
    interval: str,
    tz_name: str | None = None,
    now: datetime | None = None,
) -> DateTimeRange:
    """Resolve an interval token to a [start, end) range of UTC instants.

    - "Nd": rolling window [now - N days, now)
    - "today": [local midnight, now)
    - "yesterday": [previous local midnight, local midnight)
    """
    tz = resolve_timezone(tz_name)
    now = as_utc(now)

    if interval == "today":
        return DateTimeRange(start=start_of_day(now, tz), end=now)

    if interval == "yesterday":
        today = start_of_day(now, tz)
        yesterday = start_of_day(today - timedelta(hours=12), tz)
        return DateTimeRange(start=yesterday, end=today)

    days = _parse_days(interval)
    if days is None:
        validate_interval(interval)
    return DateTimeRange(start=now - timedelta(days=days), end=now)


def interval_to_sql(
    interval: str,
    tz_name: str | None = None,
    now: datetime | None = None,
) -> IntervalSql:
    """Render an interval token as (start, end) SQL expressions.

    Rolling windows use the store's own clock; calendar days are rendered
    as literal UTC instants for the local midnight of that specific date.
    """
    days = _parse_days(interval)
    if days is not None:
        return IntervalSql(f"NOW() - INTERVAL '{days}' DAY", "NOW()")

    date_range = resolve_interval(interval, tz_name, now)
    start_sql = f"toDateTime('{format_date_string(date_range.start)}')"
    if interval == "today":
        return IntervalSql(start_sql, "NOW()")
    return IntervalSql(start_sql, f"toDateTime('{format_date_string(date_range.end)}')")
