from __future__ import annotations

from datetime import date, datetime, time

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
DATE_FORMAT = "%Y-%m-%d"

_END_OF_DAY = time(23, 59)


def parse_timestamp(value: str) -> datetime:
    """Parse a ``yyyy-MM-dd HH:mm`` wall-clock timestamp.

    Raises ``ValueError`` for anything else; callers let it propagate.
    """
    return datetime.strptime(value, TIMESTAMP_FORMAT)


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def parse_date(value: str) -> date:
    return datetime.strptime(value, DATE_FORMAT).date()


def parse_range_bound(value: str | date | datetime, *, end: bool = False) -> datetime:
    """Turn a range filter bound into a timestamp.

    A bare date means the whole day: ``00:00`` for a lower bound and ``23:59``
    for an upper bound. Full timestamps are used as given.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, _END_OF_DAY if end else time.min)
    value = value.strip()
    if len(value) == len("yyyy-mm-dd"):
        day = parse_date(value)
        return datetime.combine(day, _END_OF_DAY if end else time.min)
    return parse_timestamp(value)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    return datetime.combine(day, time.min), datetime.combine(day, _END_OF_DAY)
