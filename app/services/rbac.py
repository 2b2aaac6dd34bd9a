"""Role capability table for the scheduling core.

Each role maps ``(resource, action)`` pairs to the scope at which the
capability holds. A missing pair means the role never has the capability.
Ownership and relationship checks for a scope are evaluated per request by
``AccessControlGuard``.
"""

from enum import Enum

from app.models.user import UserRole


class Resource(str, Enum):
    """Resources guarded by the scheduling core."""

    APPOINTMENT = "appointment"
    PATIENT = "patient"
    DOCTOR = "doctor"


class Action(str, Enum):
    """Actions an actor may attempt on a resource."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    TRANSITION = "transition"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"


class Scope(str, Enum):
    """Which instances of a resource a capability covers.

    OWN: the actor is the patient on the appointment, or the record itself.
    ASSIGNED: the actor is the doctor on the appointment.
    RELATED: a doctor and a patient share a confirmed or completed appointment.
    PUBLIC: public fields of an active doctor.
    ANY: unrestricted.
    """

    OWN = "own"
    ASSIGNED = "assigned"
    RELATED = "related"
    PUBLIC = "public"
    ANY = "any"


Capability = tuple[Resource, Action]

ROLE_CAPABILITIES: dict[UserRole, dict[Capability, Scope]] = {
    UserRole.PATIENT: {
        (Resource.APPOINTMENT, Action.CREATE): Scope.OWN,
        (Resource.APPOINTMENT, Action.READ): Scope.OWN,
        (Resource.APPOINTMENT, Action.UPDATE): Scope.OWN,
        (Resource.APPOINTMENT, Action.TRANSITION): Scope.OWN,
        (Resource.APPOINTMENT, Action.CANCEL): Scope.OWN,
        (Resource.APPOINTMENT, Action.RESCHEDULE): Scope.OWN,
        (Resource.PATIENT, Action.READ): Scope.OWN,
        (Resource.PATIENT, Action.UPDATE): Scope.OWN,
        (Resource.DOCTOR, Action.READ): Scope.PUBLIC,
    },
    UserRole.DOCTOR: {
        (Resource.APPOINTMENT, Action.READ): Scope.ASSIGNED,
        (Resource.APPOINTMENT, Action.UPDATE): Scope.ASSIGNED,
        (Resource.APPOINTMENT, Action.TRANSITION): Scope.ASSIGNED,
        (Resource.APPOINTMENT, Action.CANCEL): Scope.ASSIGNED,
        (Resource.PATIENT, Action.READ): Scope.RELATED,
        (Resource.PATIENT, Action.UPDATE): Scope.RELATED,
        (Resource.DOCTOR, Action.READ): Scope.OWN,
        (Resource.DOCTOR, Action.UPDATE): Scope.OWN,
    },
    UserRole.ADMIN: {
        (resource, action): Scope.ANY
        for resource in Resource
        for action in Action
    },
}

# Scopes a pending (not yet approved) actor may still read at
PENDING_READ_SCOPES = frozenset({Scope.OWN, Scope.ASSIGNED})


class RBACService:
    """Lookups against the capability table."""

    @staticmethod
    def get_scope(role: UserRole, resource: Resource, action: Action) -> Scope | None:
        """Get the scope of a capability, or None if the role lacks it."""
        return ROLE_CAPABILITIES.get(role, {}).get((resource, action))

    @staticmethod
    def has_capability(role: UserRole, resource: Resource, action: Action) -> bool:
        """Check whether a role holds a capability at any scope."""
        return (resource, action) in ROLE_CAPABILITIES.get(role, {})
