"""Tests for the role capability tables."""

import pytest

from saaskit.core.errors import ForbiddenError
from saaskit.core.permissions import (
    Action,
    AdminAction,
    admin_can,
    authorize,
    authorize_admin,
    can,
    can_invite_role,
)


def test_member_capabilities():
    assert can("member", Action.todo_read)
    assert can("member", Action.todo_write)
    assert can("member", Action.team_read)
    assert not can("member", Action.invitation_create)
    assert not can("member", Action.tenant_update)


def test_admin_manages_invitations_but_not_settings():
    assert can("admin", Action.invitation_create)
    assert can("admin", Action.invitation_revoke)
    assert not can("admin", Action.tenant_update)


@pytest.mark.parametrize("action", list(Action))
def test_owner_holds_every_action(action):
    assert can("owner", action)


def test_unknown_role_holds_nothing():
    assert not any(can("superuser", action) for action in Action)


def test_authorize_raises_forbidden():
    with pytest.raises(ForbiddenError):
        authorize("member", Action.invitation_create)
    authorize("owner", Action.tenant_update)


@pytest.mark.parametrize(
    "inviter, target, allowed",
    [
        ("owner", "admin", True),
        ("owner", "member", True),
        ("owner", "owner", False),
        ("admin", "member", True),
        ("admin", "admin", False),
        ("member", "member", False),
        ("owner", "root", False),
    ],
)
def test_invitable_roles(inviter, target, allowed):
    assert can_invite_role(inviter, target) is allowed


def test_platform_admin_roles():
    assert admin_can("admin", AdminAction.tenant_manage)
    assert admin_can("admin", AdminAction.audit_read)
    assert not admin_can("admin", AdminAction.admin_create)
    assert all(admin_can("primary_admin", action) for action in AdminAction)


def test_authorize_admin_message():
    with pytest.raises(ForbiddenError) as exc_info:
        authorize_admin("admin", AdminAction.admin_delete)
    assert exc_info.value.message == "Primary admin access required"
