"""Business logic services."""

from app.services.access_control import AccessControlGuard, AccessDecision
from app.services.availability import AvailabilityService
from app.services.directory import DirectoryService
from app.services.rbac import Action, RBACService, Resource, Scope
from app.services.scheduling import SchedulingService

__all__ = [
    "AccessControlGuard",
    "AccessDecision",
    "AvailabilityService",
    "DirectoryService",
    "RBACService",
    "Action",
    "Resource",
    "Scope",
    "SchedulingService",
]
