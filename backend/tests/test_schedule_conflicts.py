import asyncio
import gc
import uuid

import pytest

from deskwise.domain.errors import ScheduleConflictError
from deskwise.domain.scheduling import locks, schemas
from deskwise.domain.scheduling import service as schedule_service

DEFAULT_ORG_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
OTHER_ORG_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")


async def _conflict_ids(
    session_maker, start: str, end: str, *, org_id=DEFAULT_ORG_ID, technician_id="tech-1", exclude_id=None
) -> list[str]:
    async with session_maker() as session:
        conflicts = await schedule_service.find_conflicts(
            session, org_id, technician_id, start, end, exclude_id=exclude_id
        )
    return [item.id for item in conflicts]


@pytest.mark.anyio
async def test_overlap_inside_existing_item(async_session_maker, seed_item):
    existing = await seed_item("2024-01-10 10:00", "2024-01-10 11:00")

    assert await _conflict_ids(async_session_maker, "2024-01-10 10:30", "2024-01-10 10:45") == [existing.id]


@pytest.mark.anyio
async def test_back_to_back_is_not_a_conflict(async_session_maker, seed_item):
    await seed_item("2024-01-10 10:00", "2024-01-10 11:00")

    assert await _conflict_ids(async_session_maker, "2024-01-10 11:00", "2024-01-10 12:00") == []
    assert await _conflict_ids(async_session_maker, "2024-01-10 09:00", "2024-01-10 10:00") == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    "candidate",
    [
        ("2024-01-10 09:30", "2024-01-10 10:15"),
        ("2024-01-10 10:45", "2024-01-10 11:30"),
        ("2024-01-10 09:00", "2024-01-10 12:00"),
        ("2024-01-10 10:15", "2024-01-10 10:30"),
    ],
)
async def test_all_overlap_shapes_conflict(async_session_maker, seed_item, candidate):
    existing = await seed_item("2024-01-10 10:00", "2024-01-10 11:00")

    assert await _conflict_ids(async_session_maker, *candidate) == [existing.id]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "first,second",
    [
        (("2024-01-10 10:00", "2024-01-10 11:00"), ("2024-01-10 10:30", "2024-01-10 12:00")),
        (("2024-01-10 10:00", "2024-01-10 11:00"), ("2024-01-10 11:00", "2024-01-10 12:00")),
        (("2024-01-10 08:00", "2024-01-10 18:00"), ("2024-01-10 12:00", "2024-01-10 12:15")),
    ],
)
async def test_conflicts_are_symmetric(async_session_maker, seed_item, first, second):
    a = await seed_item(*first, technician_id="tech-a")
    b = await seed_item(*second, technician_id="tech-b")

    a_hits_b = await _conflict_ids(async_session_maker, *first, technician_id="tech-b")
    b_hits_a = await _conflict_ids(async_session_maker, *second, technician_id="tech-a")

    assert (a_hits_b == [b.id]) == (b_hits_a == [a.id])


@pytest.mark.anyio
async def test_excluded_id_is_never_returned(async_session_maker, seed_item):
    item = await seed_item("2024-01-10 10:00", "2024-01-10 11:00")
    other = await seed_item("2024-01-10 10:30", "2024-01-10 11:30")

    ids = await _conflict_ids(
        async_session_maker, "2024-01-10 10:00", "2024-01-10 11:00", exclude_id=item.id
    )

    assert ids == [other.id]


@pytest.mark.anyio
async def test_scope_is_technician_and_org(async_session_maker, seed_item):
    await seed_item("2024-01-10 10:00", "2024-01-10 11:00", technician_id="tech-2")
    await seed_item("2024-01-10 10:00", "2024-01-10 11:00", org_id=OTHER_ORG_ID)

    assert await _conflict_ids(async_session_maker, "2024-01-10 10:00", "2024-01-10 11:00") == []


@pytest.mark.anyio
async def test_results_are_ordered_by_start(async_session_maker, seed_item):
    late = await seed_item("2024-01-10 14:00", "2024-01-10 15:00")
    early = await seed_item("2024-01-10 09:00", "2024-01-10 10:00")

    ids = await _conflict_ids(async_session_maker, "2024-01-10 08:00", "2024-01-10 18:00")

    assert ids == [early.id, late.id]


@pytest.mark.anyio
async def test_malformed_timestamp_propagates(async_session_maker):
    async with async_session_maker() as session:
        with pytest.raises(ValueError):
            await schedule_service.find_conflicts(
                session, DEFAULT_ORG_ID, "tech-1", "2024-01-10T10:00", "2024-01-10 11:00"
            )


@pytest.mark.anyio
async def test_checked_create_rejects_overlap(async_session_maker, seed_item):
    existing = await seed_item("2024-01-10 10:00", "2024-01-10 11:00", title="Firewall upgrade")
    payload = schemas.ScheduleItemCreate(
        title="Printer fix",
        technician_id="tech-1",
        start="2024-01-10 10:30",
        end="2024-01-10 11:30",
    )

    async with async_session_maker() as session:
        with pytest.raises(ScheduleConflictError) as exc_info:
            await schedule_service.create_item_checked(session, DEFAULT_ORG_ID, payload)

    assert exc_info.value.errors == [
        {"id": existing.id, "title": "Firewall upgrade", "start": "2024-01-10 10:00", "end": "2024-01-10 11:00"}
    ]
    async with async_session_maker() as session:
        items = await schedule_service.list_items(session, DEFAULT_ORG_ID)
    assert [item.id for item in items] == [existing.id]


@pytest.mark.anyio
async def test_checked_update_ignores_the_item_itself(async_session_maker, seed_item):
    item = await seed_item("2024-01-10 10:00", "2024-01-10 11:00")
    await seed_item("2024-01-10 12:00", "2024-01-10 13:00")

    async with async_session_maker() as session:
        moved = await schedule_service.update_item_checked(
            session, DEFAULT_ORG_ID, item.id, schemas.ScheduleItemUpdate(end="2024-01-10 11:30")
        )
        assert moved is not None
        assert moved.ends_at.hour == 11 and moved.ends_at.minute == 30

        with pytest.raises(ScheduleConflictError):
            await schedule_service.update_item_checked(
                session, DEFAULT_ORG_ID, item.id, schemas.ScheduleItemUpdate(end="2024-01-10 12:30")
            )


async def _create_in_own_session(session_maker, payload):
    async with session_maker() as session:
        try:
            item = await schedule_service.create_item_checked(session, DEFAULT_ORG_ID, payload)
        except ScheduleConflictError:
            return "conflict"
    return item.id


@pytest.mark.anyio
async def test_concurrent_checked_creates_book_the_technician_once(async_session_maker):
    payload = schemas.ScheduleItemCreate(
        title="Server swap",
        technician_id="tech-9",
        start="2024-01-10 10:00",
        end="2024-01-10 11:00",
    )

    outcomes = await asyncio.gather(
        _create_in_own_session(async_session_maker, payload),
        _create_in_own_session(async_session_maker, payload),
    )

    assert outcomes.count("conflict") == 1
    created = [outcome for outcome in outcomes if outcome != "conflict"]
    async with async_session_maker() as session:
        items = await schedule_service.list_technician_items(session, DEFAULT_ORG_ID, "tech-9")
    assert [item.id for item in items] == created


@pytest.mark.anyio
async def test_booking_locks_are_released_after_use(async_session_maker):
    for technician_id in ("tech-a", "tech-b", "tech-c"):
        payload = schemas.ScheduleItemCreate(
            title="Onsite visit",
            technician_id=technician_id,
            start="2024-01-10 10:00",
            end="2024-01-10 11:00",
        )
        await _create_in_own_session(async_session_maker, payload)

    gc.collect()

    assert locks.held_lock_count() == 0
