"""Tests for the role capability table."""

import pytest

from app.models.user import UserRole
from app.services.rbac import ROLE_CAPABILITIES, Action, RBACService, Resource, Scope


class TestCapabilityTable:
    """Tests for role-to-scope mapping."""

    def test_patient_owns_their_appointments(self) -> None:
        for action in (Action.CREATE, Action.READ, Action.UPDATE, Action.CANCEL):
            assert RBACService.get_scope(UserRole.PATIENT, Resource.APPOINTMENT, action) == Scope.OWN

    def test_patient_reads_public_doctor_profile(self) -> None:
        assert RBACService.get_scope(UserRole.PATIENT, Resource.DOCTOR, Action.READ) == Scope.PUBLIC

    def test_doctor_works_on_assigned_appointments(self) -> None:
        for action in (Action.READ, Action.UPDATE, Action.TRANSITION):
            assert (
                RBACService.get_scope(UserRole.DOCTOR, Resource.APPOINTMENT, action)
                == Scope.ASSIGNED
            )

    def test_doctor_cannot_book(self) -> None:
        assert not RBACService.has_capability(UserRole.DOCTOR, Resource.APPOINTMENT, Action.CREATE)
        assert not RBACService.has_capability(
            UserRole.DOCTOR, Resource.APPOINTMENT, Action.RESCHEDULE
        )

    def test_doctor_reads_related_patients(self) -> None:
        assert RBACService.get_scope(UserRole.DOCTOR, Resource.PATIENT, Action.READ) == Scope.RELATED

    @pytest.mark.parametrize("resource", list(Resource))
    @pytest.mark.parametrize("action", list(Action))
    def test_admin_has_everything(self, resource, action) -> None:
        assert RBACService.get_scope(UserRole.ADMIN, resource, action) == Scope.ANY

    def test_every_role_listed(self) -> None:
        assert set(ROLE_CAPABILITIES) == set(UserRole)
