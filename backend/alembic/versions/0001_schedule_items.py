"""schedule items

Revision ID: 0001_schedule_items
Revises:
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_schedule_items"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "schedule_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("org_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("technician_id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("client_id", sa.String(length=64)),
        sa.Column("participants", sa.JSON(), nullable=False),
        sa.Column("ticket_id", sa.String(length=64)),
        sa.Column("notes", sa.Text()),
        sa.Column("location", sa.String(length=255)),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("priority", sa.String(length=16)),
        sa.Column("estimated_duration", sa.Integer()),
        sa.Column("travel_time", sa.Integer()),
        sa.Column("required_skills", sa.JSON(), nullable=False),
        sa.Column("equipment", sa.JSON(), nullable=False),
        sa.Column("reminders", sa.JSON(), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurrence_pattern", sa.JSON()),
        sa.Column("parent_recurrence_id", sa.String(length=36)),
        sa.Column("recurrence_instance_date", sa.Date()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            # ORM-managed updated_at (no database trigger).
            nullable=False,
        ),
    )
    op.create_index(
        "ix_schedule_items_org_technician_start",
        "schedule_items",
        ["org_id", "technician_id", "starts_at"],
    )
    op.create_index(
        "ix_schedule_items_org_parent",
        "schedule_items",
        ["org_id", "parent_recurrence_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_schedule_items_org_parent", table_name="schedule_items")
    op.drop_index("ix_schedule_items_org_technician_start", table_name="schedule_items")
    op.drop_table("schedule_items")
