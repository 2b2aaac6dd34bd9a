"""Error taxonomy for the scheduling core.

Every failure surfaced by the booking services is one of the classes below.
The API layer maps ``kind`` to an HTTP status in one place (see ``app.main``).
"""


class SchedulingError(Exception):
    """Base class for all scheduling core errors."""

    kind = "scheduling_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(SchedulingError):
    """Malformed input: bad time format, duration out of range, missing reason."""

    kind = "validation_error"


class NotFoundError(SchedulingError):
    """Referenced doctor, workplace or appointment is absent or unusable."""

    kind = "not_found"


class AuthorizationError(SchedulingError):
    """Actor lacks the capability for the action on the resource."""

    kind = "authorization_error"


class ConflictError(SchedulingError):
    """Requested slot is taken or no longer available at commit time."""

    kind = "conflict"


class StateError(SchedulingError):
    """Illegal appointment state transition."""

    kind = "state_error"
