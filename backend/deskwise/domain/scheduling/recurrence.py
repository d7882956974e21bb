from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from typing import Iterator

from deskwise.domain.scheduling.db_models import ScheduleItem
from deskwise.domain.scheduling.schemas import RecurrencePattern

DEFAULT_MAX_OCCURRENCES = 100

# Descriptive fields every generated instance inherits from its parent.
SERIES_COPY_FIELDS = (
    "org_id",
    "title",
    "technician_id",
    "type",
    "client_id",
    "participants",
    "ticket_id",
    "notes",
    "location",
    "priority",
    "estimated_duration",
    "travel_time",
    "required_skills",
    "equipment",
    "reminders",
)


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def advance(value: datetime, frequency: str, interval: int) -> datetime:
    if frequency == "daily":
        return value + timedelta(days=interval)
    if frequency == "weekly":
        return value + timedelta(weeks=interval)
    if frequency == "monthly":
        return add_months(value, interval)
    if frequency == "yearly":
        return add_months(value, 12 * interval)
    raise ValueError(f"unsupported recurrence type: {frequency}")


def occurrence_limit(occurrences: int | None, cap: int = DEFAULT_MAX_OCCURRENCES) -> int:
    """Zero, negative or missing counts fall back to the safety cap."""
    if occurrences is None or occurrences <= 0:
        return cap
    return min(occurrences, cap)


def iter_occurrences(
    start: datetime,
    end: datetime,
    pattern: RecurrencePattern,
    *,
    cap: int = DEFAULT_MAX_OCCURRENCES,
) -> Iterator[tuple[datetime, datetime]]:
    """Yield ``(start, end)`` for each occurrence after the first one.

    Each step advances from the previous occurrence, so month-end clamping carries
    forward (Jan 31 -> Feb 29 -> Mar 29). Generation stops at the count limit or at
    the first occurrence whose calendar date is past ``pattern.end_date``.
    """
    duration = end - start
    current = start
    for _ in range(occurrence_limit(pattern.occurrences, cap)):
        current = advance(current, pattern.type, pattern.interval)
        if pattern.end_date is not None and current.date() > pattern.end_date:
            return
        yield current, current + duration


def generate_instances(
    parent: ScheduleItem,
    pattern: RecurrencePattern,
    *,
    cap: int = DEFAULT_MAX_OCCURRENCES,
) -> list[ScheduleItem]:
    inherited = {}
    for field in SERIES_COPY_FIELDS:
        value = getattr(parent, field)
        if value is not None:
            inherited[field] = value

    instances: list[ScheduleItem] = []
    for starts_at, ends_at in iter_occurrences(parent.starts_at, parent.ends_at, pattern, cap=cap):
        instance = ScheduleItem(
            **{field: _copy(value) for field, value in inherited.items()},
            starts_at=starts_at,
            ends_at=ends_at,
            status=parent.status or "scheduled",
            is_recurring=False,
            recurrence_pattern=None,
            parent_recurrence_id=parent.id,
            recurrence_instance_date=starts_at.date(),
        )
        instances.append(instance)
    return instances


def _copy(value):  # noqa: ANN001
    if isinstance(value, list):
        return [dict(entry) if isinstance(entry, dict) else entry for entry in value]
    return value
