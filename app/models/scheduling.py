"""Scheduling models: workplaces, weekly availability and appointments."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin
from app.models.user import enum_values


class DayOfWeek(str, Enum):
    """Day of week for recurring availability, Monday first."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class AppointmentStatus(str, Enum):
    """Status of an appointment."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class AppointmentType(str, Enum):
    """Kind of visit requested by the patient."""

    CONSULTATION = "consultation"
    FOLLOW_UP = "follow-up"
    EMERGENCY = "emergency"
    ROUTINE_CHECKUP = "routine-checkup"


# Statuses that occupy a slot
ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

# Statuses that free the slot and end the lifecycle
TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
})


class Workplace(Base, TimestampMixin):
    """A hospital or clinic where doctors practise."""

    __tablename__ = "workplaces"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    address: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Workplace {self.name}>"


class DoctorWorkplace(Base, TimestampMixin):
    """A doctor's practice at one workplace, with its own fee and weekly hours.

    This row is also the lock target that serialises concurrent bookings for
    the same doctor and workplace.
    """

    __tablename__ = "doctor_workplaces"
    __table_args__ = (
        UniqueConstraint("doctor_id", "workplace_id", name="uq_doctor_workplaces_doctor_workplace"),
        CheckConstraint("consultation_fee >= 0", name="fee_non_negative"),
    )

    doctor_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workplace_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("workplaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    consultation_fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    workplace: Mapped["Workplace"] = relationship("Workplace", lazy="joined")
    windows: Mapped[list["AvailabilityWindow"]] = relationship(
        "AvailabilityWindow",
        back_populates="doctor_workplace",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<DoctorWorkplace doctor={self.doctor_id} workplace={self.workplace_id}>"


class AvailabilityWindow(Base, TimestampMixin):
    """Recurring weekly availability at one workplace.

    Windows with ``is_available`` False are kept for reference but never
    produce bookable slots.
    """

    __tablename__ = "availability_windows"

    doctor_workplace_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("doctor_workplaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week: Mapped[DayOfWeek] = mapped_column(
        SAEnum(DayOfWeek, native_enum=False, length=10, values_callable=enum_values),
        nullable=False,
    )
    # HH:MM wall-clock values
    start_time: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
    )
    end_time: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
    )
    is_available: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    doctor_workplace: Mapped["DoctorWorkplace"] = relationship(
        "DoctorWorkplace",
        back_populates="windows",
    )

    def __repr__(self) -> str:
        return f"<AvailabilityWindow {self.day_of_week.value} {self.start_time}-{self.end_time}>"


class Appointment(Base, TimestampMixin):
    """Booked appointment between a patient and a doctor at a workplace.

    Records are never deleted; cancellation is a status change. Only the
    scheduling service writes ``status`` and the lifecycle timestamps.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            "duration_minutes >= 15 AND duration_minutes <= 120",
            name="duration_bounds",
        ),
        CheckConstraint("consultation_fee >= 0", name="fee_non_negative"),
        # At most one active booking per exact slot
        Index(
            "uq_appointments_active_slot",
            "doctor_id",
            "workplace_id",
            "appointment_date",
            "appointment_time",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
            sqlite_where=text("status IN ('pending', 'confirmed')"),
        ),
        Index("ix_appointments_doctor_date", "doctor_id", "appointment_date"),
        Index("ix_appointments_patient_date", "patient_id", "appointment_date"),
    )

    patient_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    doctor_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    workplace_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("workplaces.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # Local calendar date and HH:MM wall-clock time
    appointment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )
    appointment_time: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
    )
    duration_minutes: Mapped[int] = mapped_column(
        Integer,
        default=30,
        nullable=False,
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        SAEnum(AppointmentStatus, native_enum=False, length=20, values_callable=enum_values),
        default=AppointmentStatus.PENDING,
        nullable=False,
        index=True,
    )
    appointment_type: Mapped[AppointmentType] = mapped_column(
        SAEnum(AppointmentType, native_enum=False, length=20, values_callable=enum_values),
        default=AppointmentType.CONSULTATION,
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    symptoms: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    patient_notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    doctor_notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    # Snapshot of the doctor-workplace fee at booking time
    consultation_fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )
    follow_up_required: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    follow_up_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )
    reschedule_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    # Lifecycle timestamps, each set at most once
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_by: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(
        String(300),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment {self.id[:8]}... {self.appointment_date} "
            f"{self.appointment_time} status={self.status.value}>"
        )
