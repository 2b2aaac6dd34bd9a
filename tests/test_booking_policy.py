"""Tests for the appointment lifecycle policy.

Covers:
- Structural and role-gated transitions
- Administrative override
- Cancellation cutoff
- Booking input validation
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

import pytest

from app.booking.policy import (
    ALLOWED_TRANSITIONS,
    TransitionRestriction,
    can_be_cancelled,
    get_transition_policy,
    hours_until,
    is_terminal,
    is_upcoming,
    validate_duration,
    validate_future,
    validate_symptoms,
    validate_text,
)
from app.core.errors import ValidationError
from app.models.scheduling import TERMINAL_STATUSES, AppointmentStatus
from app.models.user import UserRole


@dataclass
class FakeAppointment:
    status: AppointmentStatus
    appointment_date: date
    appointment_time: str


APPOINTMENT_DAY = date(2030, 6, 3)


def booked(status: AppointmentStatus = AppointmentStatus.PENDING) -> FakeAppointment:
    return FakeAppointment(status, APPOINTMENT_DAY, "10:00")


def at(hh: int, mm: int = 0) -> datetime:
    return datetime.combine(APPOINTMENT_DAY, time(hh, mm))


class TestTransitionTable:
    """Tests for the structural state machine."""

    def test_terminal_states_have_no_exits(self) -> None:
        for status in TERMINAL_STATUSES:
            assert ALLOWED_TRANSITIONS[status] == frozenset()
            assert is_terminal(status)

    def test_nothing_returns_to_pending(self) -> None:
        for targets in ALLOWED_TRANSITIONS.values():
            assert AppointmentStatus.PENDING not in targets


class TestDoctorTransitions:
    """Doctors confirm, complete and mark no-shows."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.PENDING, AppointmentStatus.COMPLETED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.NO_SHOW),
        ],
    )
    def test_allowed(self, current, target) -> None:
        decision = get_transition_policy(UserRole.DOCTOR, current, target)
        assert decision.allowed is True
        assert decision.is_override is False

    def test_doctor_cannot_cancel_by_transition(self) -> None:
        decision = get_transition_policy(
            UserRole.DOCTOR, AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED
        )
        assert decision.allowed is False
        assert decision.restriction == TransitionRestriction.ROLE_NOT_PERMITTED

    def test_cancelled_cannot_be_confirmed(self) -> None:
        decision = get_transition_policy(
            UserRole.DOCTOR, AppointmentStatus.CANCELLED, AppointmentStatus.CONFIRMED
        )
        assert decision.allowed is False
        assert decision.restriction == TransitionRestriction.TERMINAL_STATE

    def test_confirmed_cannot_go_back_to_pending(self) -> None:
        decision = get_transition_policy(
            UserRole.DOCTOR, AppointmentStatus.CONFIRMED, AppointmentStatus.PENDING
        )
        assert decision.restriction == TransitionRestriction.INVALID_TRANSITION


class TestPatientTransitions:
    """Patients may only cancel a pending appointment."""

    def test_patient_can_cancel_pending(self) -> None:
        decision = get_transition_policy(
            UserRole.PATIENT, AppointmentStatus.PENDING, AppointmentStatus.CANCELLED
        )
        assert decision.allowed is True

    def test_patient_cannot_confirm(self) -> None:
        decision = get_transition_policy(
            UserRole.PATIENT, AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED
        )
        assert decision.restriction == TransitionRestriction.ROLE_NOT_PERMITTED


class TestAdminOverride:
    """Admins may force any change, flagged as override when irregular."""

    def test_regular_transition_is_not_override(self) -> None:
        decision = get_transition_policy(
            UserRole.ADMIN, AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED
        )
        assert decision.allowed is True
        assert decision.is_override is False

    def test_leaving_terminal_state_is_override(self) -> None:
        decision = get_transition_policy(
            UserRole.ADMIN, AppointmentStatus.CANCELLED, AppointmentStatus.PENDING
        )
        assert decision.allowed is True
        assert decision.is_override is True

    def test_same_status_refused(self) -> None:
        decision = get_transition_policy(
            UserRole.ADMIN, AppointmentStatus.COMPLETED, AppointmentStatus.COMPLETED
        )
        assert decision.allowed is False


class TestCancellationCutoff:
    """Cancellation needs more than two hours notice."""

    def test_ninety_minutes_before_refused(self) -> None:
        assert can_be_cancelled(booked(), at(8, 30), cutoff_hours=2) is False

    def test_three_hours_before_allowed(self) -> None:
        assert can_be_cancelled(booked(), at(7, 0), cutoff_hours=2) is True

    def test_exactly_at_cutoff_refused(self) -> None:
        assert can_be_cancelled(booked(), at(8, 0), cutoff_hours=2) is False

    def test_terminal_appointment_never_cancellable(self) -> None:
        appointment = booked(AppointmentStatus.COMPLETED)
        assert can_be_cancelled(appointment, at(1, 0), cutoff_hours=2) is False

    def test_hours_until_and_upcoming(self) -> None:
        assert hours_until(booked(), at(7, 0)) == pytest.approx(3.0)
        assert is_upcoming(booked(), at(9, 0)) is True
        assert is_upcoming(booked(), at(11, 0)) is False
        assert is_upcoming(booked(AppointmentStatus.CANCELLED), at(9, 0)) is False


class TestInputValidation:
    """Tests for booking input checks."""

    def test_duration_defaults(self) -> None:
        assert validate_duration(None) == 30

    @pytest.mark.parametrize("value", [10, 121, 0, True, "30"])
    def test_duration_rejected(self, value) -> None:
        with pytest.raises(ValidationError):
            validate_duration(value)

    def test_duration_bounds_inclusive(self) -> None:
        assert validate_duration(15) == 15
        assert validate_duration(120) == 120

    def test_required_text(self) -> None:
        with pytest.raises(ValidationError):
            validate_text("   ", "Reason", 500, required=True)
        assert validate_text("  Chest pain ", "Reason", 500, required=True) == "Chest pain"

    def test_text_length(self) -> None:
        with pytest.raises(ValidationError):
            validate_text("x" * 301, "Cancellation reason", 300)

    def test_symptoms_cleaned(self) -> None:
        assert validate_symptoms([" cough ", "", "fever"]) == ["cough", "fever"]
        assert validate_symptoms(None) == []

    def test_past_start_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_future(APPOINTMENT_DAY, "10:00", at(10, 0))
        assert validate_future(APPOINTMENT_DAY, "10:00", at(9, 59)) == at(10, 0)

    def test_validation_error_message(self) -> None:
        with pytest.raises(ValidationError, match="between 15 and 120"):
            validate_duration(5)

    def test_future_uses_wall_clock(self) -> None:
        now = datetime.combine(APPOINTMENT_DAY - timedelta(days=1), time(23, 59))
        assert validate_future(APPOINTMENT_DAY, "00:00", now) == at(0, 0)
