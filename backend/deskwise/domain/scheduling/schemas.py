from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from deskwise.domain.scheduling.timestamps import format_timestamp, parse_timestamp

ScheduleItemType = Literal["Ticket", "Meeting", "Appointment", "Time Off"]
ScheduleStatus = Literal["scheduled", "in-progress", "completed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]
RecurrenceType = Literal["daily", "weekly", "monthly", "yearly"]
SeriesScope = Literal["this-only", "this-and-future", "all-instances"]
TimePreference = Literal["morning", "afternoon", "any"]


def _coerce_timestamp(value):  # noqa: ANN001
    if isinstance(value, str):
        return parse_timestamp(value.strip())
    return value


Timestamp = Annotated[
    datetime,
    BeforeValidator(_coerce_timestamp),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Reminder(CamelModel):
    minutes_before: int = Field(ge=0)
    method: Literal["email", "sms", "notification"] = "notification"


class RecurrencePattern(CamelModel):
    type: RecurrenceType
    interval: int = Field(default=1, ge=1)
    end_date: date | None = None
    occurrences: int | None = None

    @field_validator("end_date", mode="before")
    @classmethod
    def blank_end_date(cls, value):  # noqa: ANN001
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ScheduleItemFields(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    technician_id: str = Field(min_length=1, max_length=64)
    type: ScheduleItemType = "Appointment"
    client_id: str | None = None
    participants: list[str] = Field(default_factory=list)
    ticket_id: str | None = None
    notes: str | None = None
    location: str | None = None
    status: ScheduleStatus = "scheduled"
    priority: Priority | None = None
    estimated_duration: int | None = Field(default=None, ge=0)
    travel_time: int | None = Field(default=None, ge=0)
    required_skills: list[str] = Field(default_factory=list)
    equipment: list[str] = Field(default_factory=list)
    reminders: list[Reminder] = Field(default_factory=list)


class ScheduleItemCreate(ScheduleItemFields):
    start: Timestamp
    end: Timestamp

    @model_validator(mode="after")
    def validate_range(self) -> "ScheduleItemCreate":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class RecurringSeriesCreate(ScheduleItemCreate):
    recurrence_pattern: RecurrencePattern


class SeriesUpdate(CamelModel):
    """Changes applied across a recurring group.

    Absolute ``start``/``end`` are not accepted here: one timestamp written to every
    instance would collapse the series onto a single slot.
    """

    title: str | None = Field(default=None, min_length=1, max_length=255)
    technician_id: str | None = Field(default=None, min_length=1, max_length=64)
    type: ScheduleItemType | None = None
    client_id: str | None = None
    participants: list[str] | None = None
    ticket_id: str | None = None
    notes: str | None = None
    location: str | None = None
    status: ScheduleStatus | None = None
    priority: Priority | None = None
    estimated_duration: int | None = Field(default=None, ge=0)
    travel_time: int | None = Field(default=None, ge=0)
    required_skills: list[str] | None = None
    equipment: list[str] | None = None
    reminders: list[Reminder] | None = None


class ScheduleItemUpdate(SeriesUpdate):
    start: Timestamp | None = None
    end: Timestamp | None = None

    @model_validator(mode="after")
    def validate_range(self) -> "ScheduleItemUpdate":
        if self.start is not None and self.end is not None and self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class ScheduleItemResponse(CamelModel):
    id: str
    title: str
    technician_id: str
    type: ScheduleItemType
    start: Timestamp
    end: Timestamp
    client_id: str | None = None
    participants: list[str] = Field(default_factory=list)
    ticket_id: str | None = None
    notes: str | None = None
    location: str | None = None
    status: ScheduleStatus
    priority: Priority | None = None
    estimated_duration: int | None = None
    travel_time: int | None = None
    required_skills: list[str] = Field(default_factory=list)
    equipment: list[str] = Field(default_factory=list)
    reminders: list[Reminder] = Field(default_factory=list)
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    parent_recurrence_id: str | None = None
    recurrence_instance_date: date | None = None


class ConflictCheckResponse(CamelModel):
    has_conflicts: bool
    conflicts: list[ScheduleItemResponse]


class SlotResponse(CamelModel):
    start: Timestamp
    end: Timestamp


class OptimalSlotResponse(CamelModel):
    found: bool
    slot: SlotResponse | None = None


class WorkloadResponse(CamelModel):
    total_hours: float
    scheduled_hours: float
    available_hours: float
    utilization: float
    items: list[ScheduleItemResponse]


class RecurringSeriesCreateResponse(CamelModel):
    parent_item: ScheduleItemResponse
    instances: list[ScheduleItemResponse]
    total_created: int


class SeriesDeleteResponse(CamelModel):
    deleted_count: int
