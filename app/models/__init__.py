"""Database models for the MediBook scheduling core."""

from app.models.scheduling import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentStatus,
    AppointmentType,
    AvailabilityWindow,
    DayOfWeek,
    DoctorWorkplace,
    Workplace,
)
from app.models.user import User, UserRole, UserStatus

__all__ = [
    # Directory
    "User",
    "UserRole",
    "UserStatus",
    "Workplace",
    "DoctorWorkplace",
    "AvailabilityWindow",
    "DayOfWeek",
    # Appointments
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
]
