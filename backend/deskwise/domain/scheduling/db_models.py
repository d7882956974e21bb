from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from deskwise.infra.db import Base, UUID_TYPE
from deskwise.settings import settings


class ScheduleItem(Base):
    __tablename__ = "schedule_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID_TYPE,
        nullable=False,
        default=lambda: settings.default_org_id,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    technician_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="Appointment")
    starts_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    client_id: Mapped[str | None] = mapped_column(String(64))
    participants: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    ticket_id: Mapped[str | None] = mapped_column(String(64))
    notes: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="scheduled")
    priority: Mapped[str | None] = mapped_column(String(16))
    estimated_duration: Mapped[int | None] = mapped_column(Integer)
    travel_time: Mapped[int | None] = mapped_column(Integer)
    required_skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    equipment: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    reminders: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_pattern: Mapped[dict | None] = mapped_column(JSON)
    parent_recurrence_id: Mapped[str | None] = mapped_column(String(36))
    recurrence_instance_date: Mapped[date | None] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_schedule_items_org_technician_start", "org_id", "technician_id", "starts_at"),
        Index("ix_schedule_items_org_parent", "org_id", "parent_recurrence_id"),
    )
