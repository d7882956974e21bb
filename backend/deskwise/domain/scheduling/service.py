from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from deskwise.domain.errors import ScheduleConflictError
from deskwise.domain.scheduling import schemas
from deskwise.domain.scheduling.db_models import ScheduleItem
from deskwise.domain.scheduling.locks import technician_booking_lock
from deskwise.domain.scheduling.recurrence import generate_instances
from deskwise.domain.scheduling.slots import SlotWindow, WorkingHours, search_days
from deskwise.domain.scheduling.timestamps import day_bounds, parse_range_bound, parse_timestamp
from deskwise.infra.metrics import metrics
from deskwise.settings import settings

logger = logging.getLogger(__name__)

# Wire names that differ from the ORM attribute names.
_FIELD_COLUMNS = {"start": "starts_at", "end": "ends_at"}

# Fields an update may clear; every other field ignores an explicit null.
_NULLABLE_FIELDS = frozenset(
    {"client_id", "ticket_id", "notes", "location", "priority", "estimated_duration", "travel_time"}
)


@dataclass
class TechnicianWorkload:
    total_hours: float
    scheduled_hours: float
    available_hours: float
    utilization: float
    items: list[ScheduleItem]


def _as_timestamp(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return value
    return parse_timestamp(value)


def _column_values(data: dict) -> dict:
    return {_FIELD_COLUMNS.get(key, key): value for key, value in data.items()}


def _overlaps_range(start: datetime, end: datetime) -> ColumnElement[bool]:
    """Starts in range, ends in range, or spans the whole range."""
    return or_(
        and_(ScheduleItem.starts_at >= start, ScheduleItem.starts_at <= end),
        and_(ScheduleItem.ends_at >= start, ScheduleItem.ends_at <= end),
        and_(ScheduleItem.starts_at <= start, ScheduleItem.ends_at >= end),
    )


def _series_members(parent_id: str) -> ColumnElement[bool]:
    return or_(ScheduleItem.id == parent_id, ScheduleItem.parent_recurrence_id == parent_id)


def _series_scope_filter(parent_id: str, scope: str, now: datetime) -> ColumnElement[bool]:
    if scope == "this-only":
        return ScheduleItem.id == parent_id
    if scope == "all-instances":
        return _series_members(parent_id)
    if scope == "this-and-future":
        return or_(
            ScheduleItem.id == parent_id,
            and_(ScheduleItem.parent_recurrence_id == parent_id, ScheduleItem.starts_at >= now),
        )
    raise ValueError(f"unknown series scope: {scope}")


async def list_items(
    session: AsyncSession,
    org_id: uuid.UUID,
    *,
    technician_id: str | None = None,
    item_type: str | None = None,
    start_date: str | date | datetime | None = None,
    end_date: str | date | datetime | None = None,
) -> list[ScheduleItem]:
    stmt = select(ScheduleItem).where(ScheduleItem.org_id == org_id)
    if technician_id:
        stmt = stmt.where(ScheduleItem.technician_id == technician_id)
    if item_type:
        stmt = stmt.where(ScheduleItem.type == item_type)
    if start_date is not None and end_date is not None:
        stmt = stmt.where(
            _overlaps_range(parse_range_bound(start_date), parse_range_bound(end_date, end=True))
        )
    elif start_date is not None:
        stmt = stmt.where(ScheduleItem.starts_at >= parse_range_bound(start_date))
    elif end_date is not None:
        stmt = stmt.where(ScheduleItem.ends_at <= parse_range_bound(end_date, end=True))
    result = await session.execute(stmt.order_by(ScheduleItem.starts_at, ScheduleItem.id))
    return list(result.scalars().all())


async def get_item(session: AsyncSession, org_id: uuid.UUID, item_id: str) -> ScheduleItem | None:
    stmt = select(ScheduleItem).where(ScheduleItem.org_id == org_id, ScheduleItem.id == item_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_items_in_range(
    session: AsyncSession,
    org_id: uuid.UUID,
    start: str | date | datetime,
    end: str | date | datetime,
    technician_ids: Iterable[str] | None = None,
) -> list[ScheduleItem]:
    stmt = select(ScheduleItem).where(
        ScheduleItem.org_id == org_id,
        _overlaps_range(parse_range_bound(start), parse_range_bound(end, end=True)),
    )
    technician_ids = [tech for tech in (technician_ids or []) if tech]
    if technician_ids:
        stmt = stmt.where(ScheduleItem.technician_id.in_(technician_ids))
    result = await session.execute(stmt.order_by(ScheduleItem.starts_at, ScheduleItem.id))
    return list(result.scalars().all())


async def list_technician_items(
    session: AsyncSession,
    org_id: uuid.UUID,
    technician_id: str,
    start_date: str | date | datetime | None = None,
    end_date: str | date | datetime | None = None,
) -> list[ScheduleItem]:
    return await list_items(
        session,
        org_id,
        technician_id=technician_id,
        start_date=start_date,
        end_date=end_date,
    )


async def technician_day_schedule(
    session: AsyncSession, org_id: uuid.UUID, technician_id: str, day: date
) -> list[ScheduleItem]:
    day_start, day_end = day_bounds(day)
    return await list_items_in_range(session, org_id, day_start, day_end, [technician_id])


async def find_conflicts(
    session: AsyncSession,
    org_id: uuid.UUID,
    technician_id: str,
    start: datetime | str,
    end: datetime | str,
    exclude_id: str | None = None,
) -> list[ScheduleItem]:
    """Items of the technician that share any instant with ``[start, end)``.

    Back-to-back items do not conflict.
    """
    start_at = _as_timestamp(start)
    end_at = _as_timestamp(end)
    stmt = select(ScheduleItem).where(
        ScheduleItem.org_id == org_id,
        ScheduleItem.technician_id == technician_id,
        ScheduleItem.starts_at < end_at,
        ScheduleItem.ends_at > start_at,
    )
    if exclude_id:
        stmt = stmt.where(ScheduleItem.id != exclude_id)
    result = await session.execute(stmt.order_by(ScheduleItem.starts_at, ScheduleItem.id))
    conflicts = list(result.scalars().all())
    if conflicts:
        metrics.record_schedule_conflict()
        logger.info(
            "schedule_conflicts_detected",
            extra={
                "extra": {
                    "event": "schedule_conflicts_detected",
                    "technician_id": technician_id,
                    "conflict_ids": [item.id for item in conflicts],
                }
            },
        )
    return conflicts


async def create_item(
    session: AsyncSession, org_id: uuid.UUID, payload: schemas.ScheduleItemCreate
) -> ScheduleItem:
    item = ScheduleItem(org_id=org_id, **_column_values(payload.model_dump()))
    session.add(item)
    await session.commit()
    metrics.record_schedule_operation("created")
    logger.info(
        "schedule_item_created",
        extra={"extra": {"event": "schedule_item_created", "item_id": item.id}},
    )
    return item


async def create_item_checked(
    session: AsyncSession, org_id: uuid.UUID, payload: schemas.ScheduleItemCreate
) -> ScheduleItem:
    async with technician_booking_lock(org_id, payload.technician_id):
        conflicts = await find_conflicts(
            session, org_id, payload.technician_id, payload.start, payload.end
        )
        if conflicts:
            raise ScheduleConflictError(conflicts)
        return await create_item(session, org_id, payload)


def _changes(payload: schemas.SeriesUpdate) -> dict:
    values = _column_values(payload.model_dump(exclude_unset=True))
    return {
        field: value
        for field, value in values.items()
        if value is not None or field in _NULLABLE_FIELDS
    }


def _apply_changes(item: ScheduleItem, changes: dict) -> None:
    starts_at = changes.get("starts_at", item.starts_at)
    ends_at = changes.get("ends_at", item.ends_at)
    if ends_at <= starts_at:
        raise ValueError("end must be after start")
    for field, value in changes.items():
        setattr(item, field, value)


async def update_item(
    session: AsyncSession,
    org_id: uuid.UUID,
    item_id: str,
    payload: schemas.ScheduleItemUpdate,
) -> ScheduleItem | None:
    item = await get_item(session, org_id, item_id)
    if item is None:
        return None
    _apply_changes(item, _changes(payload))
    await session.commit()
    metrics.record_schedule_operation("updated")
    return item


async def update_item_checked(
    session: AsyncSession,
    org_id: uuid.UUID,
    item_id: str,
    payload: schemas.ScheduleItemUpdate,
) -> ScheduleItem | None:
    item = await get_item(session, org_id, item_id)
    if item is None:
        return None
    if not payload.model_fields_set & {"technician_id", "start", "end"}:
        return await update_item(session, org_id, item_id, payload)

    technician_id = payload.technician_id or item.technician_id
    start = payload.start or item.starts_at
    end = payload.end or item.ends_at
    if end <= start:
        raise ValueError("end must be after start")
    async with technician_booking_lock(org_id, technician_id):
        conflicts = await find_conflicts(session, org_id, technician_id, start, end, exclude_id=item_id)
        if conflicts:
            raise ScheduleConflictError(conflicts)
        return await update_item(session, org_id, item_id, payload)


async def delete_item(session: AsyncSession, org_id: uuid.UUID, item_id: str) -> bool:
    item = await get_item(session, org_id, item_id)
    if item is None:
        return False
    await session.delete(item)
    await session.commit()
    metrics.record_schedule_operation("deleted")
    return True


async def create_recurring_series(
    session: AsyncSession,
    org_id: uuid.UUID,
    payload: schemas.RecurringSeriesCreate,
) -> list[ScheduleItem]:
    """Store the parent and every generated instance in one transaction.

    Returns ``[parent, *instances]`` in chronological order.
    """
    pattern = payload.recurrence_pattern
    values = _column_values(payload.model_dump(exclude={"recurrence_pattern"}))
    parent = ScheduleItem(
        id=str(uuid.uuid4()),
        org_id=org_id,
        is_recurring=True,
        recurrence_pattern=pattern.model_dump(mode="json"),
        **values,
    )
    instances = generate_instances(parent, pattern, cap=settings.schedule_max_occurrences)
    session.add(parent)
    session.add_all(instances)
    await session.commit()
    metrics.record_schedule_operation("created", 1 + len(instances))
    logger.info(
        "recurring_series_created",
        extra={
            "extra": {
                "event": "recurring_series_created",
                "parent_id": parent.id,
                "instances": len(instances),
                "pattern": pattern.type,
            }
        },
    )
    return [parent, *instances]


async def get_recurring_series(
    session: AsyncSession, org_id: uuid.UUID, parent_id: str
) -> list[ScheduleItem]:
    stmt = (
        select(ScheduleItem)
        .where(ScheduleItem.org_id == org_id, _series_members(parent_id))
        .order_by(ScheduleItem.starts_at, ScheduleItem.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _recurring_parent(
    session: AsyncSession, org_id: uuid.UUID, parent_id: str
) -> ScheduleItem | None:
    parent = await get_item(session, org_id, parent_id)
    if parent is None or not parent.is_recurring:
        return None
    return parent


async def update_recurring_series(
    session: AsyncSession,
    org_id: uuid.UUID,
    parent_id: str,
    payload: schemas.SeriesUpdate,
    scope: str,
    *,
    now: datetime | None = None,
) -> list[ScheduleItem]:
    """Apply ``payload`` to the part of the series selected by ``scope``.

    ``this-and-future`` compares each instance start against ``now`` at call time.
    Instances are never regenerated.
    """
    parent = await _recurring_parent(session, org_id, parent_id)
    if parent is None:
        return []
    cutoff = now or datetime.now()
    condition = _series_scope_filter(parent_id, scope, cutoff)
    changes = _changes(payload)
    if changes:
        await session.execute(
            update(ScheduleItem)
            .where(ScheduleItem.org_id == org_id, condition)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    result = await session.execute(
        select(ScheduleItem)
        .where(ScheduleItem.org_id == org_id, condition)
        .order_by(ScheduleItem.starts_at, ScheduleItem.id)
        .execution_options(populate_existing=True)
    )
    updated = list(result.scalars().all())
    metrics.record_schedule_operation("updated", len(updated))
    logger.info(
        "recurring_series_updated",
        extra={
            "extra": {
                "event": "recurring_series_updated",
                "parent_id": parent_id,
                "scope": scope,
                "updated": len(updated),
            }
        },
    )
    return updated


async def delete_recurring_series(
    session: AsyncSession,
    org_id: uuid.UUID,
    parent_id: str,
    scope: str,
    *,
    now: datetime | None = None,
) -> int:
    parent = await _recurring_parent(session, org_id, parent_id)
    if parent is None:
        return 0
    cutoff = now or datetime.now()
    result = await session.execute(
        delete(ScheduleItem)
        .where(ScheduleItem.org_id == org_id, _series_scope_filter(parent_id, scope, cutoff))
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    deleted = result.rowcount or 0
    metrics.record_schedule_operation("deleted", deleted)
    logger.info(
        "recurring_series_deleted",
        extra={
            "extra": {
                "event": "recurring_series_deleted",
                "parent_id": parent_id,
                "scope": scope,
                "deleted": deleted,
            }
        },
    )
    return deleted


async def technician_workload(
    session: AsyncSession,
    org_id: uuid.UUID,
    technician_id: str,
    start_date: str | date | datetime,
    end_date: str | date | datetime,
) -> TechnicianWorkload:
    items = await list_items_in_range(session, org_id, start_date, end_date, [technician_id])
    scheduled_minutes = 0.0
    for item in items:
        scheduled_minutes += (item.ends_at - item.starts_at).total_seconds() / 60
        if item.travel_time:
            scheduled_minutes += item.travel_time

    total_hours = settings.schedule_weekly_capacity_hours
    scheduled_hours = scheduled_minutes / 60
    utilization = (scheduled_hours / total_hours) * 100 if total_hours else 100.0
    return TechnicianWorkload(
        total_hours=total_hours,
        scheduled_hours=round(scheduled_hours, 2),
        available_hours=round(max(0.0, total_hours - scheduled_hours), 2),
        utilization=round(min(100.0, utilization), 2),
        items=items,
    )


async def find_optimal_slot(
    session: AsyncSession,
    org_id: uuid.UUID,
    technician_id: str,
    duration_minutes: int,
    preferred_date: date | str,
    time_preference: str = "any",
) -> SlotWindow | None:
    """First-fit search for a free slot, one working window per day.

    Returns ``None`` when no day in the search horizon has a long enough gap.
    """
    if isinstance(preferred_date, str):
        preferred_date = parse_range_bound(preferred_date).date()
    days = settings.schedule_slot_search_days
    horizon_start, _ = day_bounds(preferred_date)
    _, horizon_end = day_bounds(preferred_date + timedelta(days=days - 1))
    items = await list_items_in_range(session, org_id, horizon_start, horizon_end, [technician_id])
    slot = search_days(
        preferred_date,
        duration_minutes,
        time_preference,
        [(item.starts_at, item.ends_at) for item in items],
        hours=WorkingHours.from_settings(settings),
        days=days,
    )
    metrics.record_slot_search(slot is not None)
    if slot is None:
        logger.info(
            "optimal_slot_not_found",
            extra={
                "extra": {
                    "event": "optimal_slot_not_found",
                    "technician_id": technician_id,
                    "duration_minutes": duration_minutes,
                    "preferred_date": preferred_date.isoformat(),
                }
            },
        )
    return slot
