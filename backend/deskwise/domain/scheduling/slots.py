from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable

from deskwise.settings import Settings


@dataclass(frozen=True)
class WorkingHours:
    start_hour: int = 9
    morning_end_hour: int = 12
    afternoon_start_hour: int = 13
    end_hour: int = 17

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkingHours":
        return cls(
            start_hour=settings.schedule_work_start_hour,
            morning_end_hour=settings.schedule_morning_end_hour,
            afternoon_start_hour=settings.schedule_afternoon_start_hour,
            end_hour=settings.schedule_work_end_hour,
        )

    def window(self, day: date, preference: str) -> tuple[datetime, datetime]:
        if preference == "morning":
            start_hour, end_hour = self.start_hour, self.morning_end_hour
        elif preference == "afternoon":
            start_hour, end_hour = self.afternoon_start_hour, self.end_hour
        else:
            start_hour, end_hour = self.start_hour, self.end_hour
        return datetime.combine(day, time(start_hour)), datetime.combine(day, time(end_hour))


@dataclass(frozen=True)
class SlotWindow:
    start: datetime
    end: datetime


def first_fit(
    window_start: datetime,
    window_end: datetime,
    busy: Iterable[tuple[datetime, datetime]],
    duration: timedelta,
) -> SlotWindow | None:
    """Return the earliest gap of ``duration`` inside the window, or ``None``.

    Busy intervals may overlap each other or stick out of the window; only the part
    inside the window blocks time.
    """
    if window_end - window_start < duration:
        return None
    cursor = window_start
    for busy_start, busy_end in sorted(busy):
        if busy_end <= cursor:
            continue
        if busy_start >= window_end:
            break
        if busy_start - cursor >= duration:
            return SlotWindow(cursor, cursor + duration)
        cursor = max(cursor, busy_end)
        if cursor >= window_end:
            return None
    if window_end - cursor >= duration:
        return SlotWindow(cursor, cursor + duration)
    return None


def search_days(
    preferred_date: date,
    duration_minutes: int,
    preference: str,
    busy: Iterable[tuple[datetime, datetime]],
    *,
    hours: WorkingHours = WorkingHours(),
    days: int = 7,
) -> SlotWindow | None:
    """Scan ``days`` calendar days from ``preferred_date`` and return the first fit."""
    duration = timedelta(minutes=duration_minutes)
    busy_sorted = sorted(busy)
    for offset in range(days):
        day = preferred_date + timedelta(days=offset)
        window_start, window_end = hours.window(day, preference)
        day_busy = [
            (busy_start, busy_end)
            for busy_start, busy_end in busy_sorted
            if busy_start < window_end and busy_end > window_start
        ]
        slot = first_fit(window_start, window_end, day_busy, duration)
        if slot is not None:
            return slot
    return None
