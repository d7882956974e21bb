import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from deskwise.api.org_context import require_org_context
from deskwise.dependencies import get_db_session
from deskwise.domain.scheduling import schemas
from deskwise.domain.scheduling import service as schedule_service
from deskwise.domain.scheduling.db_models import ScheduleItem

router = APIRouter(prefix="/v1/schedule", tags=["schedule"])


def _item_response(item: ScheduleItem) -> schemas.ScheduleItemResponse:
    return schemas.ScheduleItemResponse(
        id=item.id,
        title=item.title,
        technician_id=item.technician_id,
        type=item.type,
        start=item.starts_at,
        end=item.ends_at,
        client_id=item.client_id,
        participants=item.participants or [],
        ticket_id=item.ticket_id,
        notes=item.notes,
        location=item.location,
        status=item.status,
        priority=item.priority,
        estimated_duration=item.estimated_duration,
        travel_time=item.travel_time,
        required_skills=item.required_skills or [],
        equipment=item.equipment or [],
        reminders=item.reminders or [],
        is_recurring=item.is_recurring,
        recurrence_pattern=item.recurrence_pattern,
        parent_recurrence_id=item.parent_recurrence_id,
        recurrence_instance_date=item.recurrence_instance_date,
    )


def _invalid_query(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.get("", response_model=list[schemas.ScheduleItemResponse])
async def list_schedule_items(
    technician_id: str | None = Query(default=None, alias="technicianId"),
    item_type: schemas.ScheduleItemType | None = Query(default=None, alias="type"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> list[schemas.ScheduleItemResponse]:
    try:
        items = await schedule_service.list_items(
            session,
            org_id,
            technician_id=technician_id,
            item_type=item_type,
            start_date=start_date or None,
            end_date=end_date or None,
        )
    except ValueError as exc:
        raise _invalid_query(exc) from exc
    return [_item_response(item) for item in items]


@router.post("", response_model=schemas.ScheduleItemResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule_item(
    payload: schemas.ScheduleItemCreate,
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.ScheduleItemResponse:
    item = await schedule_service.create_item_checked(session, org_id, payload)
    return _item_response(item)


@router.get("/by-date", response_model=list[schemas.ScheduleItemResponse])
async def list_schedule_items_by_date(
    start_date: str = Query(alias="startDate"),
    end_date: str = Query(alias="endDate"),
    technician_ids: str | None = Query(default=None, alias="technicianIds"),
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> list[schemas.ScheduleItemResponse]:
    technicians = [tech.strip() for tech in (technician_ids or "").split(",") if tech.strip()]
    try:
        items = await schedule_service.list_items_in_range(session, org_id, start_date, end_date, technicians)
    except ValueError as exc:
        raise _invalid_query(exc) from exc
    return [_item_response(item) for item in items]


@router.get("/conflicts", response_model=schemas.ConflictCheckResponse)
async def check_conflicts(
    technician_id: str = Query(alias="technicianId", min_length=1),
    start: str = Query(),
    end: str = Query(),
    exclude_id: str | None = Query(default=None, alias="excludeId"),
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.ConflictCheckResponse:
    try:
        conflicts = await schedule_service.find_conflicts(
            session, org_id, technician_id, start, end, exclude_id=exclude_id
        )
    except ValueError as exc:
        raise _invalid_query(exc) from exc
    return schemas.ConflictCheckResponse(
        has_conflicts=bool(conflicts),
        conflicts=[_item_response(item) for item in conflicts],
    )


@router.get("/optimal-slot", response_model=schemas.OptimalSlotResponse)
async def optimal_slot(
    technician_id: str = Query(alias="technicianId", min_length=1),
    duration: int = Query(gt=0),
    preferred_date: date = Query(alias="preferredDate"),
    time_preference: schemas.TimePreference = Query(default="any", alias="timePreference"),
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.OptimalSlotResponse:
    slot = await schedule_service.find_optimal_slot(
        session, org_id, technician_id, duration, preferred_date, time_preference
    )
    if slot is None:
        return schemas.OptimalSlotResponse(found=False, slot=None)
    return schemas.OptimalSlotResponse(found=True, slot=schemas.SlotResponse(start=slot.start, end=slot.end))


@router.get("/workload", response_model=schemas.WorkloadResponse)
async def technician_workload(
    technician_id: str = Query(alias="technicianId", min_length=1),
    start_date: str = Query(alias="startDate"),
    end_date: str = Query(alias="endDate"),
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.WorkloadResponse:
    try:
        workload = await schedule_service.technician_workload(
            session, org_id, technician_id, start_date, end_date
        )
    except ValueError as exc:
        raise _invalid_query(exc) from exc
    return schemas.WorkloadResponse(
        total_hours=workload.total_hours,
        scheduled_hours=workload.scheduled_hours,
        available_hours=workload.available_hours,
        utilization=workload.utilization,
        items=[_item_response(item) for item in workload.items],
    )


@router.post(
    "/recurring",
    response_model=schemas.RecurringSeriesCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_recurring_series(
    payload: schemas.RecurringSeriesCreate,
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.RecurringSeriesCreateResponse:
    parent, *instances = await schedule_service.create_recurring_series(session, org_id, payload)
    return schemas.RecurringSeriesCreateResponse(
        parent_item=_item_response(parent),
        instances=[_item_response(item) for item in instances],
        total_created=1 + len(instances),
    )


@router.get("/recurring/{parent_id}", response_model=list[schemas.ScheduleItemResponse])
async def get_recurring_series(
    parent_id: str,
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> list[schemas.ScheduleItemResponse]:
    items = await schedule_service.get_recurring_series(session, org_id, parent_id)
    if not items:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring series not found")
    return [_item_response(item) for item in items]


@router.patch("/recurring/{parent_id}", response_model=list[schemas.ScheduleItemResponse])
async def update_recurring_series(
    parent_id: str,
    payload: schemas.SeriesUpdate,
    scope: schemas.SeriesScope = Query(default="this-only"),
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> list[schemas.ScheduleItemResponse]:
    items = await schedule_service.update_recurring_series(session, org_id, parent_id, payload, scope)
    if not items:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring series not found")
    return [_item_response(item) for item in items]


@router.delete("/recurring/{parent_id}", response_model=schemas.SeriesDeleteResponse)
async def delete_recurring_series(
    parent_id: str,
    scope: schemas.SeriesScope = Query(default="this-only"),
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.SeriesDeleteResponse:
    deleted = await schedule_service.delete_recurring_series(session, org_id, parent_id, scope)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring series not found")
    return schemas.SeriesDeleteResponse(deleted_count=deleted)


@router.get("/{item_id}", response_model=schemas.ScheduleItemResponse)
async def get_schedule_item(
    item_id: str,
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.ScheduleItemResponse:
    item = await schedule_service.get_item(session, org_id, item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule item not found")
    return _item_response(item)


@router.put("/{item_id}", response_model=schemas.ScheduleItemResponse)
async def update_schedule_item(
    item_id: str,
    payload: schemas.ScheduleItemUpdate,
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.ScheduleItemResponse:
    try:
        item = await schedule_service.update_item_checked(session, org_id, item_id, payload)
    except ValueError as exc:
        raise _invalid_query(exc) from exc
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule item not found")
    return _item_response(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule_item(
    item_id: str,
    org_id: uuid.UUID = Depends(require_org_context),
    session: AsyncSession = Depends(get_db_session),
) -> Response:
    deleted = await schedule_service.delete_item(session, org_id, item_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule item not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
