"""Tests for the role policy table."""

import pytest
from servicedesk.errors import PermissionDenied
from servicedesk.models.user import User, UserRole
from servicedesk.policy import POLICY, Action, authorize, is_allowed


def user_with(role: UserRole) -> User:
    return User(id=1, name="Someone", role=role)


class TestPolicy:
    def test_every_action_has_roles(self):
        assert set(POLICY) == set(Action)
        assert all(POLICY[action] for action in Action)

    @pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.SERVICE_HEAD, UserRole.ENGINEER])
    def test_field_staff_create_service_records(self, role):
        assert is_allowed(user_with(role), Action.CREATE_SERVICE_RECORD)

    @pytest.mark.parametrize("role", [UserRole.SALES, UserRole.COMMERCIAL])
    def test_office_staff_cannot_create_service_records(self, role):
        assert not is_allowed(user_with(role), Action.CREATE_SERVICE_RECORD)

    def test_sales_reviews_quotations(self):
        assert is_allowed(user_with(UserRole.SALES), Action.REVIEW_SPARES_QUOTATION)
        assert not is_allowed(user_with(UserRole.ENGINEER), Action.REVIEW_SPARES_QUOTATION)

    def test_authorize_reports_required_roles(self):
        with pytest.raises(PermissionDenied) as exc_info:
            authorize(user_with(UserRole.ENGINEER), Action.PURGE_NOTIFICATIONS)

        assert exc_info.value.status_code == 403
        assert exc_info.value.details["required_roles"] == ["ADMIN"]
        assert "ENGINEER" in exc_info.value.message

    def test_authorize_custom_message(self):
        with pytest.raises(PermissionDenied, match="Only Admin"):
            authorize(user_with(UserRole.SALES), Action.CREATE_USER, "Only Admin can create users")
