"""
core/permissions.py
-------------------
Capability tables for tenant users and platform admins.

Every role check in the codebase goes through authorize() or
authorize_admin(); call sites never compare role strings themselves.
"""

from enum import Enum

from saaskit.core.errors import ForbiddenError
from saaskit.models.admin import AdminRole
from saaskit.models.user import UserRole


class Action(str, Enum):
    todo_read = "todo:read"
    todo_write = "todo:write"
    invitation_read = "invitation:read"
    invitation_create = "invitation:create"
    invitation_revoke = "invitation:revoke"
    team_read = "team:read"
    tenant_read = "tenant:read"
    tenant_update = "tenant:update"


class AdminAction(str, Enum):
    admin_read = "admin:read"
    admin_create = "admin:create"
    admin_update = "admin:update"
    admin_delete = "admin:delete"
    tenant_manage = "tenant:manage"
    user_manage = "user:manage"
    audit_read = "audit:read"


_MEMBER = {
    Action.todo_read,
    Action.todo_write,
    Action.team_read,
    Action.tenant_read,
}
_ADMIN = _MEMBER | {
    Action.invitation_read,
    Action.invitation_create,
    Action.invitation_revoke,
}
_OWNER = _ADMIN | {Action.tenant_update}

CAPABILITIES: dict[UserRole, frozenset[Action]] = {
    UserRole.member: frozenset(_MEMBER),
    UserRole.admin: frozenset(_ADMIN),
    UserRole.owner: frozenset(_OWNER),
}

# Roles each inviter may hand out.
INVITABLE_ROLES: dict[UserRole, frozenset[UserRole]] = {
    UserRole.owner: frozenset({UserRole.admin, UserRole.member}),
    UserRole.admin: frozenset({UserRole.member}),
    UserRole.member: frozenset(),
}

_PLATFORM_ADMIN = {
    AdminAction.tenant_manage,
    AdminAction.user_manage,
    AdminAction.audit_read,
}

ADMIN_CAPABILITIES: dict[AdminRole, frozenset[AdminAction]] = {
    AdminRole.admin: frozenset(_PLATFORM_ADMIN),
    AdminRole.primary_admin: frozenset(
        _PLATFORM_ADMIN
        | {
            AdminAction.admin_read,
            AdminAction.admin_create,
            AdminAction.admin_update,
            AdminAction.admin_delete,
        }
    ),
}


def _as_role(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        return None


def can(role: str, action: Action) -> bool:
    user_role = _as_role(UserRole, role)
    if user_role is None:
        return False
    return action in CAPABILITIES[user_role]


def authorize(role: str, action: Action) -> None:
    """Raise ForbiddenError unless `role` holds `action`."""
    if not can(role, action):
        raise ForbiddenError("You do not have permission to perform this action")


def can_invite_role(inviter_role: str, target_role: str) -> bool:
    inviter = _as_role(UserRole, inviter_role)
    target = _as_role(UserRole, target_role)
    if inviter is None or target is None:
        return False
    return target in INVITABLE_ROLES[inviter]


def admin_can(role: str, action: AdminAction) -> bool:
    admin_role = _as_role(AdminRole, role)
    if admin_role is None:
        return False
    return action in ADMIN_CAPABILITIES[admin_role]


def authorize_admin(role: str, action: AdminAction) -> None:
    if not admin_can(role, action):
        raise ForbiddenError("Primary admin access required")
