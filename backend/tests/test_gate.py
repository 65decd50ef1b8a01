"""Tests for the approval gate and role checks."""

import pytest

from goagri.auth.permissions import ADMIN_ROLES, is_superadmin, requires_approval
from goagri.models.user import UserRole


@pytest.mark.unit
class TestApprovalGate:

    def test_superadmin_is_never_gated(self):
        assert requires_approval("superadmin") is False

    @pytest.mark.parametrize("role", ["admin", "user", "driver"])
    def test_every_other_role_is_gated(self, role):
        assert requires_approval(role) is True

    def test_missing_role_is_gated(self):
        assert requires_approval(None) is True
        assert requires_approval("") is True

    def test_role_match_is_exact(self):
        assert requires_approval("SuperAdmin") is True
        assert is_superadmin("super admin") is False

    def test_gate_matches_role_for_all_known_roles(self):
        for role in UserRole:
            assert requires_approval(role.value) == (role.value != "superadmin")

    def test_only_admins_may_act(self):
        assert ADMIN_ROLES == {"admin", "superadmin"}
