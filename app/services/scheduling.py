"""Scheduling service for the appointment lifecycle.

Creates, transitions, cancels and reschedules appointments. Every write runs
in one session transaction: the doctor-workplace row is locked, the request
is checked against availability and active bookings, and the change is
committed once. On SQLite the lock is a no-op and writers are serialised by
``BEGIN IMMEDIATE`` instead (see ``app.db.session``). The partial unique
index on active slots backs both up for identical start times and surfaces
as ``ConflictError``.

Status only changes through ``transition_appointment`` and
``cancel_appointment``. Terminal appointments are immutable except for an
administrative override, which is always audit-logged.
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.intervals import day_of_week, format_hhmm, parse_hhmm
from app.booking.policy import (
    MAX_CANCELLATION_REASON_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_REASON_LENGTH,
    STATUS_TIMESTAMP_FIELDS,
    TransitionDecision,
    TransitionRestriction,
    can_be_cancelled,
    get_transition_policy,
    is_active,
    is_terminal,
    validate_duration,
    validate_future,
    validate_symptoms,
    validate_text,
)
from app.booking.slots import find_conflict, window_bounds, window_contains
from app.core.config import settings
from app.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from app.core.logging import audit_logger
from app.models.scheduling import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    DoctorWorkplace,
)
from app.models.user import User, UserRole
from app.services.access_control import AccessControlGuard, AppointmentScope
from app.services.availability import AvailabilityService
from app.services.directory import DirectoryService
from app.services.rbac import Action, Resource
from app.utils.time import local_now, utc_now

logger = logging.getLogger(__name__)

# Detail fields each role may edit through update_appointment_details
PATIENT_EDITABLE_FIELDS = frozenset({"reason", "symptoms", "patient_notes"})
DOCTOR_EDITABLE_FIELDS = frozenset({"doctor_notes", "follow_up_required", "follow_up_date"})
ADMIN_EDITABLE_FIELDS = PATIENT_EDITABLE_FIELDS | DOCTOR_EDITABLE_FIELDS | {"appointment_type"}

EDITABLE_FIELDS: dict[UserRole, frozenset[str]] = {
    UserRole.PATIENT: PATIENT_EDITABLE_FIELDS,
    UserRole.DOCTOR: DOCTOR_EDITABLE_FIELDS,
    UserRole.ADMIN: ADMIN_EDITABLE_FIELDS,
}

MAX_PAGE_SIZE = 100


def _parse_appointment_type(value: AppointmentType | str | None) -> AppointmentType:
    if value is None:
        return AppointmentType.CONSULTATION
    try:
        return AppointmentType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in AppointmentType)
        raise ValidationError(f"Invalid appointment type '{value}'. Expected one of: {allowed}")


def _parse_status(value: AppointmentStatus | str) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in AppointmentStatus)
        raise ValidationError(f"Invalid status '{value}'. Expected one of: {allowed}")


def _check_decision(decision: TransitionDecision) -> None:
    if decision.allowed:
        return
    if decision.restriction == TransitionRestriction.ROLE_NOT_PERMITTED:
        raise AuthorizationError(decision.message)
    raise StateError(decision.message)


class SchedulingService:
    """Service for booking and managing appointments."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = local_now,
    ):
        self.session = session
        self.clock = clock
        self.directory = DirectoryService(session)
        self.availability = AvailabilityService(session)
        self.guard = AccessControlGuard(session)

    # ------------------------------------------------------------------
    # Transactions and loading
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        """Commit once on success, roll back on any failure."""
        try:
            yield
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            logger.warning(f"Slot claimed concurrently: {exc.orig}")
            raise ConflictError("The selected time slot was just booked. Please choose another") from exc
        except Exception:
            await self.session.rollback()
            raise

    async def _load_appointment(self, appointment_id: str, lock: bool = False) -> Appointment:
        query = select(Appointment).where(Appointment.id == appointment_id)
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query)
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    async def _claim_slot(
        self,
        doctor_id: str,
        workplace_id: str,
        on_date: date,
        start: int,
        duration: int,
        exclude_appointment_id: str | None = None,
    ) -> DoctorWorkplace:
        """Lock the practice row and check the requested interval is free.

        Returns:
            The locked doctor-workplace row, for the fee snapshot

        Raises:
            NotFoundError: If the doctor or the practice is absent or inactive
            ConflictError: If the interval is outside availability or overlaps
        """
        await self.directory.get_doctor(doctor_id)
        practice = await self.directory.get_doctor_workplace(doctor_id, workplace_id, lock=True)

        windows = await self.directory.get_doctor_availability(
            doctor_id, workplace_id, day=day_of_week(on_date)
        )
        bounds = [window_bounds(w.start_time, w.end_time) for w in windows]
        if not window_contains(bounds, start, duration):
            raise ConflictError("The selected time slot is not available")

        booked = await self.availability.get_booked_intervals(
            doctor_id, workplace_id, on_date, exclude_appointment_id=exclude_appointment_id
        )
        clash = find_conflict(start, duration, booked)
        if clash is not None:
            raise ConflictError(
                f"Time slot conflicts with an existing appointment at {format_hhmm(clash.start)}"
            )

        return practice

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_appointment(
        self,
        actor: User,
        doctor_id: str,
        workplace_id: str,
        appointment_date: date,
        appointment_time: str,
        reason: str,
        duration_minutes: int | None = None,
        appointment_type: AppointmentType | str | None = None,
        patient_id: str | None = None,
        symptoms: list[str] | None = None,
        patient_notes: str | None = None,
    ) -> Appointment:
        """Book an appointment in the pending state.

        Patients book for themselves. Admins book on behalf of the patient
        named by ``patient_id``.

        Raises:
            AuthorizationError: Actor may not book for this patient
            ValidationError: Malformed input or a start in the past
            NotFoundError: Patient, doctor or practice absent or inactive
            ConflictError: Slot outside availability or already taken
        """
        if actor.role == UserRole.PATIENT and patient_id is None:
            patient_id = actor.id
        if not patient_id:
            raise ValidationError("patient_id is required when booking on behalf of a patient")

        async with self._unit_of_work():
            await self.guard.require(
                actor,
                Action.CREATE,
                Resource.APPOINTMENT,
                AppointmentScope(patient_id=patient_id, doctor_id=doctor_id),
            )

            start = parse_hhmm(appointment_time)
            time_str = format_hhmm(start)
            duration = validate_duration(duration_minutes)
            visit_type = _parse_appointment_type(appointment_type)
            reason_text = validate_text(reason, "Reason", MAX_REASON_LENGTH, required=True)
            symptom_list = validate_symptoms(symptoms)
            notes = validate_text(patient_notes, "Patient notes", MAX_NOTES_LENGTH)
            validate_future(appointment_date, time_str, self.clock())

            await self.directory.get_patient(patient_id, active_only=True)
            practice = await self._claim_slot(
                doctor_id, workplace_id, appointment_date, start, duration
            )

            appointment = Appointment(
                patient_id=patient_id,
                doctor_id=doctor_id,
                workplace_id=workplace_id,
                appointment_date=appointment_date,
                appointment_time=time_str,
                duration_minutes=duration,
                status=AppointmentStatus.PENDING,
                appointment_type=visit_type,
                reason=reason_text,
                symptoms=symptom_list,
                patient_notes=notes,
                consultation_fee=practice.consultation_fee,
                follow_up_required=False,
                reschedule_count=0,
            )
            self.session.add(appointment)
            await self.session.flush()

        audit_logger.log(
            action="appointment_created",
            actor_type=actor.role.value,
            actor_id=actor.id,
            entity_type="appointment",
            entity_id=appointment.id,
            metadata={
                "doctor_id": doctor_id,
                "workplace_id": workplace_id,
                "date": appointment_date.isoformat(),
                "time": time_str,
                "duration": duration,
            },
        )
        return appointment

    # ------------------------------------------------------------------
    # Transition and cancel
    # ------------------------------------------------------------------

    async def transition_appointment(
        self,
        appointment_id: str,
        actor: User,
        new_status: AppointmentStatus | str,
        reason: str | None = None,
        doctor_notes: str | None = None,
    ) -> Appointment:
        """Move an appointment to a new status.

        A patient moving to cancelled goes through ``cancel_appointment`` so
        the cutoff and reason rules apply.

        Raises:
            NotFoundError: Appointment absent
            AuthorizationError: Actor is not a party, or the role may not
                make this move
            StateError: The state machine forbids the move
            ConflictError: An admin reactivation collides with another booking
        """
        target = _parse_status(new_status)

        if target == AppointmentStatus.CANCELLED and actor.role == UserRole.PATIENT:
            appointment = await self.get_appointment(appointment_id, actor)
            decision = get_transition_policy(actor.role, appointment.status, target)
            _check_decision(decision)
            return await self.cancel_appointment(appointment_id, actor, reason or "")

        async with self._unit_of_work():
            appointment = await self._load_appointment(appointment_id, lock=True)
            await self.guard.require(actor, Action.TRANSITION, Resource.APPOINTMENT, appointment)

            previous = appointment.status
            decision = get_transition_policy(actor.role, previous, target)
            _check_decision(decision)

            notes = validate_text(doctor_notes, "Doctor notes", MAX_NOTES_LENGTH)
            cancellation_reason = None
            if target == AppointmentStatus.CANCELLED:
                cancellation_reason = validate_text(
                    reason,
                    "Cancellation reason",
                    MAX_CANCELLATION_REASON_LENGTH,
                    required=True,
                )

            # Reactivating a terminal record must not double-book the slot
            if is_terminal(previous) and is_active(target):
                await self._claim_slot(
                    appointment.doctor_id,
                    appointment.workplace_id,
                    appointment.appointment_date,
                    parse_hhmm(appointment.appointment_time),
                    appointment.duration_minutes,
                    exclude_appointment_id=appointment.id,
                )

            self._apply_status(appointment, target, actor, cancellation_reason)
            if notes:
                appointment.doctor_notes = notes
            await self.session.flush()

        metadata: dict[str, Any] = {"from": previous.value, "to": target.value}
        if decision.is_override:
            metadata["override"] = True
            logger.warning(
                f"Administrative override on appointment {appointment.id}: "
                f"{previous.value} -> {target.value} by {actor.id}"
            )
        audit_logger.log(
            action="appointment_status_changed",
            actor_type=actor.role.value,
            actor_id=actor.id,
            entity_type="appointment",
            entity_id=appointment.id,
            metadata=metadata,
        )
        return appointment

    async def cancel_appointment(
        self,
        appointment_id: str,
        actor: User,
        reason: str,
    ) -> Appointment:
        """Cancel a pending or confirmed appointment.

        Refused once the start is within ``cancellation_cutoff_hours``.

        Raises:
            NotFoundError: Appointment absent
            AuthorizationError: Actor is not a party to the appointment
            ValidationError: Missing or overlong reason
            StateError: Appointment not active or inside the cutoff
        """
        async with self._unit_of_work():
            appointment = await self._load_appointment(appointment_id, lock=True)
            await self.guard.require(actor, Action.CANCEL, Resource.APPOINTMENT, appointment)

            reason_text = validate_text(
                reason,
                "Cancellation reason",
                MAX_CANCELLATION_REASON_LENGTH,
                required=True,
            )

            previous = appointment.status
            if not is_active(previous):
                raise StateError(f"Appointment is {previous.value} and cannot be cancelled")
            if not can_be_cancelled(appointment, self.clock()):
                raise StateError(
                    f"Appointments cannot be cancelled less than "
                    f"{settings.cancellation_cutoff_hours} hours before the start"
                )

            self._apply_status(appointment, AppointmentStatus.CANCELLED, actor, reason_text)
            await self.session.flush()

        audit_logger.log(
            action="appointment_cancelled",
            actor_type=actor.role.value,
            actor_id=actor.id,
            entity_type="appointment",
            entity_id=appointment.id,
            metadata={"from": previous.value, "reason": reason_text},
        )
        return appointment

    @staticmethod
    def _apply_status(
        appointment: Appointment,
        target: AppointmentStatus,
        actor: User,
        cancellation_reason: str | None = None,
    ) -> None:
        appointment.status = target

        # Lifecycle timestamps are set once and kept across overrides
        field_name = STATUS_TIMESTAMP_FIELDS.get(target)
        if field_name and getattr(appointment, field_name) is None:
            setattr(appointment, field_name, utc_now())

        if target == AppointmentStatus.CANCELLED:
            appointment.cancelled_by = actor.id
            appointment.cancellation_reason = cancellation_reason
        else:
            # cancelled_at is set once and kept
            appointment.cancelled_by = None
            appointment.cancellation_reason = None

    # ------------------------------------------------------------------
    # Reschedule and detail updates
    # ------------------------------------------------------------------

    async def reschedule_appointment(
        self,
        appointment_id: str,
        actor: User,
        appointment_date: date,
        appointment_time: str,
        doctor_id: str | None = None,
        workplace_id: str | None = None,
        reason: str | None = None,
        symptoms: list[str] | None = None,
        patient_notes: str | None = None,
    ) -> Appointment:
        """Move a pending appointment to a new slot.

        The old slot is released and the new one claimed in the same
        transaction. The fee is re-read from the target practice.

        Raises:
            NotFoundError: Appointment, doctor or practice absent
            AuthorizationError: Actor is neither the patient nor an admin
            ValidationError: Malformed input or a start in the past
            StateError: Appointment is not pending
            ConflictError: New slot outside availability or already taken
        """
        async with self._unit_of_work():
            appointment = await self._load_appointment(appointment_id, lock=True)
            await self.guard.require(actor, Action.RESCHEDULE, Resource.APPOINTMENT, appointment)

            if appointment.status != AppointmentStatus.PENDING:
                raise StateError("Only pending appointments can be rescheduled")

            start = parse_hhmm(appointment_time)
            time_str = format_hhmm(start)
            validate_future(appointment_date, time_str, self.clock())
            reason_text = validate_text(reason, "Reason", MAX_REASON_LENGTH)
            notes = validate_text(patient_notes, "Patient notes", MAX_NOTES_LENGTH)

            target_doctor = doctor_id or appointment.doctor_id
            target_workplace = workplace_id or appointment.workplace_id
            practice = await self._claim_slot(
                target_doctor,
                target_workplace,
                appointment_date,
                start,
                appointment.duration_minutes,
                exclude_appointment_id=appointment.id,
            )

            previous_slot = f"{appointment.appointment_date.isoformat()} {appointment.appointment_time}"
            appointment.doctor_id = target_doctor
            appointment.workplace_id = target_workplace
            appointment.appointment_date = appointment_date
            appointment.appointment_time = time_str
            appointment.consultation_fee = practice.consultation_fee
            appointment.reschedule_count += 1
            if reason_text:
                appointment.reason = reason_text
            if symptoms is not None:
                appointment.symptoms = validate_symptoms(symptoms)
            if notes:
                appointment.patient_notes = notes
            await self.session.flush()

        audit_logger.log(
            action="appointment_rescheduled",
            actor_type=actor.role.value,
            actor_id=actor.id,
            entity_type="appointment",
            entity_id=appointment.id,
            metadata={
                "from": previous_slot,
                "to": f"{appointment_date.isoformat()} {time_str}",
                "doctor_id": target_doctor,
                "workplace_id": target_workplace,
            },
        )
        return appointment

    async def update_appointment_details(
        self,
        appointment_id: str,
        actor: User,
        changes: dict[str, Any],
    ) -> Appointment:
        """Edit the free-text and follow-up fields of an appointment.

        Patients edit their own fields while pending; doctors edit clinical
        notes and follow-up; admins edit any of these plus the visit type.
        Status is not editable here.

        Raises:
            NotFoundError: Appointment absent
            ValidationError: Unknown field or invalid value
            AuthorizationError: Field not editable by the actor's role
            StateError: Record no longer editable in its current status
        """
        unknown = set(changes) - ADMIN_EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if not changes:
            raise ValidationError("No fields to update")

        async with self._unit_of_work():
            appointment = await self._load_appointment(appointment_id, lock=True)
            await self.guard.require(actor, Action.UPDATE, Resource.APPOINTMENT, appointment)

            forbidden = set(changes) - EDITABLE_FIELDS.get(actor.role, frozenset())
            if forbidden:
                raise AuthorizationError(
                    f"A {actor.role.value} cannot update: {', '.join(sorted(forbidden))}"
                )

            if actor.role != UserRole.ADMIN:
                if is_terminal(appointment.status):
                    raise StateError(f"Appointment is {appointment.status.value} and can no longer change")
                if actor.role == UserRole.PATIENT and appointment.status != AppointmentStatus.PENDING:
                    raise StateError("Appointment details can only be changed while pending")

            self._apply_details(appointment, changes)
            await self.session.flush()

        audit_logger.log(
            action="appointment_updated",
            actor_type=actor.role.value,
            actor_id=actor.id,
            entity_type="appointment",
            entity_id=appointment.id,
            metadata={"fields": sorted(changes)},
        )
        return appointment

    @staticmethod
    def _apply_details(appointment: Appointment, changes: dict[str, Any]) -> None:
        if "reason" in changes:
            appointment.reason = validate_text(
                changes["reason"], "Reason", MAX_REASON_LENGTH, required=True
            )
        if "symptoms" in changes:
            appointment.symptoms = validate_symptoms(changes["symptoms"])
        if "patient_notes" in changes:
            appointment.patient_notes = validate_text(
                changes["patient_notes"], "Patient notes", MAX_NOTES_LENGTH
            )
        if "doctor_notes" in changes:
            appointment.doctor_notes = validate_text(
                changes["doctor_notes"], "Doctor notes", MAX_NOTES_LENGTH
            )
        if "appointment_type" in changes:
            appointment.appointment_type = _parse_appointment_type(changes["appointment_type"])
        if "follow_up_date" in changes:
            appointment.follow_up_date = changes["follow_up_date"]
        if "follow_up_required" in changes:
            appointment.follow_up_required = bool(changes["follow_up_required"])
            if not appointment.follow_up_required:
                appointment.follow_up_date = None

        if appointment.follow_up_required and appointment.follow_up_date is None:
            raise ValidationError("Follow-up date is required when follow-up is required")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_appointment(self, appointment_id: str, actor: User) -> Appointment:
        """Get one appointment visible to the actor.

        Raises:
            NotFoundError: Appointment absent
            AuthorizationError: Actor is not a party to it
        """
        appointment = await self._load_appointment(appointment_id)
        await self.guard.require(actor, Action.READ, Resource.APPOINTMENT, appointment)
        return appointment

    async def list_appointments(
        self,
        actor: User,
        status: AppointmentStatus | str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        doctor_id: str | None = None,
        patient_id: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Appointment], int]:
        """List appointments visible to the actor, by date then time.

        Patients see their own and doctors their assigned appointments;
        asking for another party's list is refused.

        Returns:
            Tuple of (page of appointments, total matching)
        """
        self.guard.require_standing(actor, Action.READ)

        if page < 1:
            raise ValidationError("Page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        if start_date and end_date and end_date < start_date:
            raise ValidationError("End date must not be before start date")

        if actor.role == UserRole.PATIENT:
            if patient_id and patient_id != actor.id:
                raise AuthorizationError("You can only access your own appointments")
            patient_id = actor.id
        elif actor.role == UserRole.DOCTOR:
            if doctor_id and doctor_id != actor.id:
                raise AuthorizationError("You can only access appointments assigned to you")
            doctor_id = actor.id

        conditions = []
        if patient_id:
            conditions.append(Appointment.patient_id == patient_id)
        if doctor_id:
            conditions.append(Appointment.doctor_id == doctor_id)
        if status:
            conditions.append(Appointment.status == _parse_status(status))
        if start_date:
            conditions.append(Appointment.appointment_date >= start_date)
        if end_date:
            conditions.append(Appointment.appointment_date <= end_date)

        total = await self.session.scalar(
            select(func.count()).select_from(Appointment).where(*conditions)
        )
        result = await self.session.execute(
            select(Appointment)
            .where(*conditions)
            .order_by(Appointment.appointment_date, Appointment.appointment_time)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def get_patient_record(self, actor: User, patient_id: str) -> User:
        """Get a patient's directory record through the access guard."""
        patient = await self.directory.get_patient(patient_id)
        await self.guard.require(actor, Action.READ, Resource.PATIENT, patient)
        return patient

    async def get_doctor_profile(self, actor: User, doctor_id: str) -> User:
        """Get a doctor's directory record through the access guard."""
        doctor = await self.directory.get_doctor(doctor_id, active_only=False)
        await self.guard.require(actor, Action.READ, Resource.DOCTOR, doctor)
        return doctor
