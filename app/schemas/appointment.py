"""Pydantic schemas for appointment operations.

Field rules such as duration bounds and text lengths are enforced by the
scheduling service, so every client gets the same error shape.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.scheduling import AppointmentStatus, AppointmentType


# =============================================================================
# Requests
# =============================================================================


class AppointmentCreate(BaseModel):
    """Request to book an appointment."""

    doctor_id: str
    workplace_id: str
    appointment_date: date
    appointment_time: str = Field(..., description="Start time as HH:MM (24-hour)")
    reason: str
    duration_minutes: int | None = None
    appointment_type: str | None = None
    symptoms: list[str] | None = None
    patient_notes: str | None = None
    # Required when an admin books on behalf of a patient
    patient_id: str | None = None


class AppointmentTransition(BaseModel):
    """Request to move an appointment to a new status."""

    status: str
    reason: str | None = None
    doctor_notes: str | None = None


class AppointmentCancel(BaseModel):
    """Request to cancel an appointment."""

    reason: str


class AppointmentReschedule(BaseModel):
    """Request to move a pending appointment to a new slot."""

    appointment_date: date
    appointment_time: str
    doctor_id: str | None = None
    workplace_id: str | None = None
    reason: str | None = None
    symptoms: list[str] | None = None
    patient_notes: str | None = None


class AppointmentUpdate(BaseModel):
    """Partial update of appointment details. Unset fields are left alone."""

    reason: str | None = None
    symptoms: list[str] | None = None
    patient_notes: str | None = None
    doctor_notes: str | None = None
    follow_up_required: bool | None = None
    follow_up_date: date | None = None
    appointment_type: str | None = None


# =============================================================================
# Responses
# =============================================================================


class AppointmentRead(BaseModel):
    """Appointment as returned to its parties."""

    id: str
    patient_id: str
    doctor_id: str
    workplace_id: str
    appointment_date: date
    appointment_time: str
    duration_minutes: int
    status: AppointmentStatus
    appointment_type: AppointmentType
    reason: str
    symptoms: list[str]
    patient_notes: str | None
    doctor_notes: str | None
    consultation_fee: Decimal
    follow_up_required: bool
    follow_up_date: date | None
    reschedule_count: int
    confirmed_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True, "use_enum_values": True}


class AppointmentPage(BaseModel):
    """One page of an appointment listing."""

    items: list[AppointmentRead]
    total: int
    page: int
    limit: int
    pages: int
