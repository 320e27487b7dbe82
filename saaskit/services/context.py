"""
services/context.py
-------------------
The validated {tenant_id, user_id} pair every tenant-scoped operation
runs under.

A DALContext is only ever built from an authenticated identity
(dependencies.get_dal_context), never from request input. Services call
validate_context() first thing, so a missing or half-empty context fails
closed with Unauthorized instead of running an unfiltered query.
"""

from dataclasses import dataclass
from typing import Optional

from saaskit.core.errors import UnauthorizedError
from saaskit.models.user import UserRole


@dataclass(frozen=True)
class DALContext:
    tenant_id: str
    user_id: str
    role: str = UserRole.member.value


def validate_context(ctx: Optional[DALContext]) -> DALContext:
    if ctx is None:
        raise UnauthorizedError("Authentication required")
    if not isinstance(ctx.tenant_id, str) or not ctx.tenant_id.strip():
        raise UnauthorizedError("Invalid tenant context")
    if not isinstance(ctx.user_id, str) or not ctx.user_id.strip():
        raise UnauthorizedError("Invalid user context")
    return ctx


def create_context(
    tenant_id: str, user_id: str, role: str = UserRole.member.value
) -> DALContext:
    return validate_context(DALContext(tenant_id=tenant_id, user_id=user_id, role=role))
