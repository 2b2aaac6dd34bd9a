"""Role and ownership access guard.

Every read or write in the scheduling core passes through
``AccessControlGuard``. The role table in ``app.services.rbac`` says which
scope a capability holds at; the guard then checks that scope against the
concrete resource. Relationship checks hit the database on every call and
are never cached.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthorizationError
from app.core.logging import audit_logger
from app.models.scheduling import Appointment, AppointmentStatus
from app.models.user import User, UserRole, UserStatus
from app.services.rbac import PENDING_READ_SCOPES, Action, RBACService, Resource, Scope

logger = logging.getLogger(__name__)

# Appointment statuses that let a doctor see a patient's records
RELATIONSHIP_STATUSES = (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)


@dataclass(frozen=True)
class AppointmentScope:
    """Participants of an appointment that does not exist yet."""

    patient_id: str
    doctor_id: str


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an authorization check."""

    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "AccessDecision":
        return cls(allowed=False, reason=reason)


class AccessControlGuard:
    """Evaluates ``(actor, action, resource)`` against the capability table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def authorize(
        self,
        actor: User,
        action: Action,
        resource_type: Resource,
        resource: Any = None,
    ) -> AccessDecision:
        """Decide whether ``actor`` may perform ``action`` on ``resource``.

        Args:
            actor: The calling user
            action: Attempted action
            resource_type: Kind of resource
            resource: The loaded resource. An ``Appointment`` or
                ``AppointmentScope`` for appointments, a ``User`` for patients
                and doctors. May be None only for ANY-scope checks.

        Returns:
            AccessDecision with a reason when denied
        """
        scope = RBACService.get_scope(actor.role, resource_type, action)
        if scope is None:
            return AccessDecision.deny(
                f"A {actor.role.value} cannot {action.value} {resource_type.value} records"
            )

        standing = self._check_standing(actor, action, scope)
        if not standing.allowed:
            return standing

        if scope == Scope.ANY:
            return AccessDecision.allow()

        if resource is None:
            return AccessDecision.deny(f"No {resource_type.value} given for a scoped check")

        if resource_type == Resource.APPOINTMENT:
            return self._check_appointment_scope(actor, scope, resource)

        if resource_type == Resource.PATIENT:
            return await self._check_patient_scope(actor, scope, resource)

        return self._check_doctor_scope(actor, scope, resource)

    async def require(
        self,
        actor: User,
        action: Action,
        resource_type: Resource,
        resource: Any = None,
    ) -> None:
        """Authorize or raise.

        Raises:
            AuthorizationError: With the denial reason
        """
        decision = await self.authorize(actor, action, resource_type, resource)
        if decision.allowed:
            return

        resource_id = getattr(resource, "id", None) or "-"
        logger.warning(
            f"Access denied: actor={actor.id} role={actor.role.value} "
            f"action={action.value} resource={resource_type.value}:{resource_id}"
        )
        audit_logger.log(
            action="access_denied",
            actor_type=actor.role.value,
            actor_id=actor.id,
            entity_type=resource_type.value,
            entity_id=resource_id,
            metadata={"attempted": action.value, "reason": decision.reason},
        )
        raise AuthorizationError(decision.reason or "Access denied")

    def require_standing(self, actor: User, action: Action) -> None:
        """Check account status alone, for listing queries scoped by role.

        Raises:
            AuthorizationError: If the account may not perform ``action``
        """
        scope = Scope.ANY if actor.role == UserRole.ADMIN else Scope.OWN
        decision = self._check_standing(actor, action, scope)
        if not decision.allowed:
            raise AuthorizationError(decision.reason or "Access denied")

    async def has_care_relationship(self, doctor_id: str, patient_id: str) -> bool:
        """Check for at least one confirmed or completed appointment between the two."""
        result = await self.session.execute(
            select(Appointment.id)
            .where(
                Appointment.doctor_id == doctor_id,
                Appointment.patient_id == patient_id,
                Appointment.status.in_(RELATIONSHIP_STATUSES),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    # ------------------------------------------------------------------

    @staticmethod
    def _check_standing(actor: User, action: Action, scope: Scope) -> AccessDecision:
        if actor.status == UserStatus.ACTIVE:
            return AccessDecision.allow()

        if actor.status == UserStatus.PENDING:
            if action == Action.READ and scope in PENDING_READ_SCOPES:
                return AccessDecision.allow()
            return AccessDecision.deny("Account is pending approval and may only read its own records")

        return AccessDecision.deny(f"Account is {actor.status.value}")

    @staticmethod
    def _check_appointment_scope(actor: User, scope: Scope, appointment: Any) -> AccessDecision:
        if scope == Scope.OWN:
            if appointment.patient_id == actor.id:
                return AccessDecision.allow()
            return AccessDecision.deny("You can only access your own appointments")

        if scope == Scope.ASSIGNED:
            if appointment.doctor_id == actor.id:
                return AccessDecision.allow()
            return AccessDecision.deny("You can only access appointments assigned to you")

        return AccessDecision.deny(f"Scope {scope.value} does not apply to appointments")

    async def _check_patient_scope(self, actor: User, scope: Scope, patient: User) -> AccessDecision:
        if patient.role != UserRole.PATIENT:
            return AccessDecision.deny("Target record is not a patient")

        if scope == Scope.OWN:
            if patient.id == actor.id:
                return AccessDecision.allow()
            return AccessDecision.deny("You can only access your own data")

        if scope == Scope.RELATED:
            if await self.has_care_relationship(actor.id, patient.id):
                return AccessDecision.allow()
            return AccessDecision.deny("You can only access patients you have seen or are seeing")

        return AccessDecision.deny(f"Scope {scope.value} does not apply to patients")

    @staticmethod
    def _check_doctor_scope(actor: User, scope: Scope, doctor: User) -> AccessDecision:
        if doctor.role != UserRole.DOCTOR:
            return AccessDecision.deny("Target record is not a doctor")

        if scope == Scope.OWN:
            if doctor.id == actor.id:
                return AccessDecision.allow()
            return AccessDecision.deny("You can only access your own profile")

        if scope == Scope.PUBLIC:
            if doctor.status == UserStatus.ACTIVE:
                return AccessDecision.allow()
            return AccessDecision.deny("Doctor is not available")

        return AccessDecision.deny(f"Scope {scope.value} does not apply to doctors")
