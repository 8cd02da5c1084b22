"""
Role-based authorization policy.

Every role-gated action is listed once in POLICY; services call authorize()
(or is_allowed() when an ownership rule can also grant access).
"""

import enum
from typing import Dict, FrozenSet

from servicedesk.errors import PermissionDenied
from servicedesk.models.user import User, UserRole


class Action(str, enum.Enum):
    """Role-gated actions."""

    CREATE_USER = "create_user"
    MANAGE_USERS = "manage_users"
    DEACTIVATE_USER = "deactivate_user"
    CREATE_SERVICE_RECORD = "create_service_record"
    DELETE_SERVICE_RECORD = "delete_service_record"
    WRITE_REPORT = "write_report"
    MANAGE_POINTS = "manage_points"
    DELETE_ANY_POINT = "delete_any_point"
    SEND_CUSTOM_NOTIFICATION = "send_custom_notification"
    VIEW_NOTIFICATION_STATISTICS = "view_notification_statistics"
    PURGE_NOTIFICATIONS = "purge_notifications"
    DELETE_SPARES_QUOTATION = "delete_spares_quotation"
    REVIEW_SPARES_QUOTATION = "review_spares_quotation"


_ADMIN = frozenset({UserRole.ADMIN})
_SUPERVISORS = frozenset({UserRole.ADMIN, UserRole.SERVICE_HEAD})
_FIELD_STAFF = frozenset({UserRole.ADMIN, UserRole.SERVICE_HEAD, UserRole.ENGINEER})

POLICY: Dict[Action, FrozenSet[UserRole]] = {
    Action.CREATE_USER: _ADMIN,
    Action.MANAGE_USERS: _ADMIN,
    Action.DEACTIVATE_USER: _ADMIN,
    Action.CREATE_SERVICE_RECORD: _FIELD_STAFF,
    Action.DELETE_SERVICE_RECORD: _SUPERVISORS,
    Action.WRITE_REPORT: _FIELD_STAFF,
    Action.MANAGE_POINTS: _FIELD_STAFF,
    Action.DELETE_ANY_POINT: _SUPERVISORS,
    Action.SEND_CUSTOM_NOTIFICATION: _SUPERVISORS,
    Action.VIEW_NOTIFICATION_STATISTICS: _ADMIN,
    Action.PURGE_NOTIFICATIONS: _ADMIN,
    Action.DELETE_SPARES_QUOTATION: _SUPERVISORS,
    Action.REVIEW_SPARES_QUOTATION: frozenset({UserRole.ADMIN, UserRole.SERVICE_HEAD, UserRole.SALES}),
}


def is_allowed(user: User, action: Action) -> bool:
    """Whether the user's role grants the action."""
    return user.role in POLICY[action]


def authorize(user: User, action: Action, message: str = None):
    """
    Raise PermissionDenied unless the user's role grants the action.

    Args:
        user: Acting user
        action: Action being attempted
        message: Optional human-readable reason (defaults to the role list)
    """
    if is_allowed(user, action):
        return

    roles = sorted(role.value for role in POLICY[action])
    raise PermissionDenied(
        message or f"Required roles: {', '.join(roles)}. Your role: {user.role.value}",
        {"required_roles": roles},
    )
