"""Appointment lifecycle policy.

Pure rules for the appointment state machine, the cancellation cutoff and
booking input validation. Nothing here touches the database; every function
works on plain values or any object exposing ``status``,
``appointment_date`` and ``appointment_time``.

State machine::

    pending ──> confirmed ──> completed
       │            │
       ├────────────┴──> cancelled
       └────────────┴──> no-show

``completed``, ``cancelled`` and ``no-show`` are terminal. Only an admin
override may move a record out of a terminal state.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Protocol

from app.booking.intervals import parse_hhmm
from app.core.config import settings
from app.core.errors import ValidationError
from app.models.scheduling import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    AppointmentStatus,
)
from app.models.user import UserRole

# Structural transitions, independent of who asks
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

# Per-role subset of ALLOWED_TRANSITIONS. Admins are not listed: they may
# force any transition.
ROLE_TRANSITIONS: dict[UserRole, dict[AppointmentStatus, frozenset[AppointmentStatus]]] = {
    UserRole.DOCTOR: {
        AppointmentStatus.PENDING: frozenset({
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
        }),
        AppointmentStatus.CONFIRMED: frozenset({
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
        }),
    },
    UserRole.PATIENT: {
        AppointmentStatus.PENDING: frozenset({AppointmentStatus.CANCELLED}),
    },
}

# Lifecycle timestamp stamped when a status is first reached
STATUS_TIMESTAMP_FIELDS: dict[AppointmentStatus, str] = {
    AppointmentStatus.CONFIRMED: "confirmed_at",
    AppointmentStatus.COMPLETED: "completed_at",
    AppointmentStatus.CANCELLED: "cancelled_at",
}

MAX_REASON_LENGTH = 500
MAX_CANCELLATION_REASON_LENGTH = 300
MAX_NOTES_LENGTH = 1000
MAX_SYMPTOM_LENGTH = 100


class ScheduledItem(Protocol):
    """Anything with the scheduling fields of an appointment."""

    status: AppointmentStatus
    appointment_date: date
    appointment_time: str


class TransitionRestriction(str, Enum):
    """Why a transition was refused."""

    NONE = "none"
    TERMINAL_STATE = "terminal_state"
    INVALID_TRANSITION = "invalid_transition"
    ROLE_NOT_PERMITTED = "role_not_permitted"


@dataclass
class TransitionDecision:
    """Policy decision for a requested status change.

    Attributes:
        allowed: Whether the transition may proceed
        restriction: Reason for refusal, NONE when allowed
        is_override: True when an admin moves a record against the state machine
        message: Human-readable explanation
    """

    allowed: bool
    restriction: TransitionRestriction
    is_override: bool
    message: str


def is_terminal(status: AppointmentStatus) -> bool:
    """Check whether a status ends the lifecycle."""
    return status in TERMINAL_STATUSES


def is_active(status: AppointmentStatus) -> bool:
    """Check whether a status occupies its slot."""
    return status in ACTIVE_STATUSES


def get_transition_policy(
    role: UserRole,
    current: AppointmentStatus,
    target: AppointmentStatus,
) -> TransitionDecision:
    """Decide whether ``role`` may move an appointment from ``current`` to ``target``.

    Ownership is not checked here; the access guard handles that.

    Examples:
        >>> get_transition_policy(UserRole.DOCTOR, AppointmentStatus.PENDING,
        ...                       AppointmentStatus.CONFIRMED).allowed
        True
        >>> get_transition_policy(UserRole.DOCTOR, AppointmentStatus.CANCELLED,
        ...                       AppointmentStatus.COMPLETED).allowed
        False
    """
    structurally_allowed = target in ALLOWED_TRANSITIONS[current]

    if role == UserRole.ADMIN:
        if current == target:
            return TransitionDecision(
                allowed=False,
                restriction=TransitionRestriction.INVALID_TRANSITION,
                is_override=False,
                message=f"Appointment is already {current.value}",
            )
        return TransitionDecision(
            allowed=True,
            restriction=TransitionRestriction.NONE,
            is_override=not structurally_allowed,
            message=(
                f"Administrative override: {current.value} -> {target.value}"
                if not structurally_allowed
                else f"Transition {current.value} -> {target.value} allowed"
            ),
        )

    if is_terminal(current):
        return TransitionDecision(
            allowed=False,
            restriction=TransitionRestriction.TERMINAL_STATE,
            is_override=False,
            message=f"Appointment is {current.value} and can no longer change",
        )

    if not structurally_allowed:
        return TransitionDecision(
            allowed=False,
            restriction=TransitionRestriction.INVALID_TRANSITION,
            is_override=False,
            message=f"Cannot move appointment from {current.value} to {target.value}",
        )

    role_targets = ROLE_TRANSITIONS.get(role, {}).get(current, frozenset())
    if target not in role_targets:
        return TransitionDecision(
            allowed=False,
            restriction=TransitionRestriction.ROLE_NOT_PERMITTED,
            is_override=False,
            message=(
                f"A {role.value} cannot move an appointment from "
                f"{current.value} to {target.value}"
            ),
        )

    return TransitionDecision(
        allowed=True,
        restriction=TransitionRestriction.NONE,
        is_override=False,
        message=f"Transition {current.value} -> {target.value} allowed",
    )


# =============================================================================
# DERIVED TIME QUERIES
# =============================================================================


def combine_datetime(appointment_date: date, appointment_time: str) -> datetime:
    """Combine a local calendar date and HH:MM into a naive local datetime."""
    minutes = parse_hhmm(appointment_time)
    return datetime.combine(appointment_date, time(minutes // 60, minutes % 60))


def appointment_datetime(appointment: ScheduledItem) -> datetime:
    """Start of the appointment as a naive local datetime."""
    return combine_datetime(appointment.appointment_date, appointment.appointment_time)


def hours_until(appointment: ScheduledItem, now: datetime) -> float:
    """Hours from ``now`` until the appointment starts (negative once past)."""
    return (appointment_datetime(appointment) - now).total_seconds() / 3600


def is_upcoming(appointment: ScheduledItem, now: datetime) -> bool:
    """An active appointment whose start is still ahead."""
    return is_active(appointment.status) and appointment_datetime(appointment) > now


def can_be_cancelled(
    appointment: ScheduledItem,
    now: datetime,
    cutoff_hours: int | None = None,
) -> bool:
    """Active and starting strictly more than the cutoff from ``now``.

    Examples:
        An appointment 90 minutes away cannot be cancelled; one 3 hours away can.
    """
    if cutoff_hours is None:
        cutoff_hours = settings.cancellation_cutoff_hours
    remaining = appointment_datetime(appointment) - now
    return is_active(appointment.status) and remaining > timedelta(hours=cutoff_hours)


# =============================================================================
# INPUT VALIDATION
# =============================================================================


def validate_duration(duration_minutes: int | None) -> int:
    """Apply the default duration and enforce its bounds."""
    if duration_minutes is None:
        return settings.default_duration_minutes
    if not isinstance(duration_minutes, int) or isinstance(duration_minutes, bool):
        raise ValidationError("Duration must be a whole number of minutes")
    if not settings.min_duration_minutes <= duration_minutes <= settings.max_duration_minutes:
        raise ValidationError(
            f"Duration must be between {settings.min_duration_minutes} and "
            f"{settings.max_duration_minutes} minutes"
        )
    return duration_minutes


def validate_text(
    value: str | None,
    field: str,
    max_length: int,
    required: bool = False,
) -> str | None:
    """Strip free text and enforce presence and length."""
    cleaned = value.strip() if isinstance(value, str) else None
    if not cleaned:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if len(cleaned) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters")
    return cleaned


def validate_symptoms(symptoms: list[str] | None) -> list[str]:
    """Drop blank entries and enforce per-symptom length."""
    cleaned: list[str] = []
    for symptom in symptoms or []:
        text = validate_text(symptom, "Symptom", MAX_SYMPTOM_LENGTH)
        if text:
            cleaned.append(text)
    return cleaned


def validate_future(appointment_date: date, appointment_time: str, now: datetime) -> datetime:
    """Require the combined date and time to be strictly after ``now``."""
    start = combine_datetime(appointment_date, appointment_time)
    if start <= now:
        raise ValidationError("Appointment must be scheduled for a future date and time")
    return start
