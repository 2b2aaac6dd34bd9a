"""Scheduling core schema.

Revision ID: 001
Revises:
Create Date: 2026-10-01 00:00:00.000000

Adds:
- users directory (patients, doctors, admins)
- workplaces, doctor_workplaces and weekly availability_windows
- appointments with a partial unique index on active slots
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_SLOT_PREDICATE = "status IN ('pending', 'confirmed')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create scheduling tables."""

    # ========================================================================
    # DIRECTORY
    # ========================================================================

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("specialization", sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "workplaces",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "doctor_workplaces",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "doctor_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "workplace_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("workplaces.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("consultation_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("doctor_id", "workplace_id", name="uq_doctor_workplaces_doctor_workplace"),
        sa.CheckConstraint("consultation_fee >= 0", name="ck_doctor_workplaces_fee_non_negative"),
    )
    op.create_index("ix_doctor_workplaces_doctor_id", "doctor_workplaces", ["doctor_id"])
    op.create_index("ix_doctor_workplaces_workplace_id", "doctor_workplaces", ["workplace_id"])

    op.create_table(
        "availability_windows",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "doctor_workplace_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("doctor_workplaces.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.String(10), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_availability_windows_doctor_workplace_id",
        "availability_windows",
        ["doctor_workplace_id"],
    )

    # ========================================================================
    # APPOINTMENTS
    # ========================================================================

    op.create_table(
        "appointments",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "doctor_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "workplace_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("workplaces.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.String(5), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("appointment_type", sa.String(20), nullable=False, server_default="consultation"),
        sa.Column("reason", sa.String(500), nullable=False),
        sa.Column("symptoms", sa.JSON(), nullable=False),
        sa.Column("patient_notes", sa.Text(), nullable=True),
        sa.Column("doctor_notes", sa.Text(), nullable=True),
        sa.Column("consultation_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("follow_up_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("follow_up_date", sa.Date(), nullable=True),
        sa.Column("reschedule_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "cancelled_by",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("cancellation_reason", sa.String(300), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "duration_minutes >= 15 AND duration_minutes <= 120",
            name="ck_appointments_duration_bounds",
        ),
        sa.CheckConstraint("consultation_fee >= 0", name="ck_appointments_fee_non_negative"),
    )
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index("ix_appointments_workplace_id", "appointments", ["workplace_id"])
    op.create_index("ix_appointments_doctor_date", "appointments", ["doctor_id", "appointment_date"])
    op.create_index("ix_appointments_patient_date", "appointments", ["patient_id", "appointment_date"])

    # At most one active booking per exact slot
    op.create_index(
        "uq_appointments_active_slot",
        "appointments",
        ["doctor_id", "workplace_id", "appointment_date", "appointment_time"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_SLOT_PREDICATE),
        sqlite_where=sa.text(ACTIVE_SLOT_PREDICATE),
    )


def downgrade() -> None:
    """Drop scheduling tables."""
    op.drop_index("uq_appointments_active_slot", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("availability_windows")
    op.drop_table("doctor_workplaces")
    op.drop_table("workplaces")
    op.drop_table("users")
