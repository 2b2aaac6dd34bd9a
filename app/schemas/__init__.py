"""Pydantic schemas for API request/response validation."""

from app.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentPage,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentTransition,
    AppointmentUpdate,
)
from app.schemas.availability import (
    AvailableDateRead,
    BookableDoctorRead,
    PracticeRead,
    SlotList,
    SlotRead,
    WindowRead,
)
from app.schemas.user import DoctorPublicRead, PatientRead

__all__ = [
    "AppointmentCancel",
    "AppointmentCreate",
    "AppointmentPage",
    "AppointmentRead",
    "AppointmentReschedule",
    "AppointmentTransition",
    "AppointmentUpdate",
    "AvailableDateRead",
    "BookableDoctorRead",
    "PracticeRead",
    "SlotList",
    "SlotRead",
    "WindowRead",
    "DoctorPublicRead",
    "PatientRead",
]
