"""
dependencies.py
---------------
FastAPI dependency injection functions for authentication and authorisation.

Tenant users:
  1. The session JWT is read from the Authorization: Bearer header, or from
     the `session_token` cookie set at login.
  2. decode_access_token validates and parses it.
  3. get_current_user re-loads the user by (sub, tenant_id) and the tenant
     on EVERY request: a deleted user or a suspended tenant is rejected on
     the very next call, without any revocation list.
  4. If the host resolved to a tenant, it must be the token's tenant.
  5. get_dal_context turns the result into the DALContext services take.

Platform admins use a separate cookie and table (get_admin_context); the
two never mix.
"""

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.errors import ForbiddenError, NotFoundError, UnauthorizedError
from saaskit.core.logging import bind_request_context, get_logger
from saaskit.core.permissions import Action, AdminAction, authorize, authorize_admin
from saaskit.core.security import decode_access_token
from saaskit.db.session import get_db
from saaskit.models.tenant import Tenant
from saaskit.models.user import User
from saaskit.services.admin_session_service import (
    ADMIN_SESSION_COOKIE,
    AdminContext,
    AdminSessionService,
)
from saaskit.services.context import DALContext, create_context
from saaskit.services.tenant_service import TenantService
from saaskit.services.user_service import UserService

logger = get_logger(__name__)

SESSION_COOKIE = "session_token"

# tokenUrl must match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


@dataclass
class CurrentUser:
    user: User
    tenant: Tenant

    @property
    def ctx(self) -> DALContext:
        return create_context(self.tenant.id, self.user.id, self.user.role)


async def get_current_user(
    request: Request,
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CurrentUser:
    """
    Decode the session token, then load the user and tenant.
    Raises 401 if the token is invalid or the user no longer exists,
    403 if the tenant is suspended or is not the one the host resolved to.
    """
    token = token or request.cookies.get(SESSION_COOKIE)
    if not token:
        raise _CREDENTIALS_EXCEPTION

    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        logger.warning("JWT decode failed", error=str(exc))
        raise _CREDENTIALS_EXCEPTION

    user_id = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    if not user_id or not tenant_id:
        raise _CREDENTIALS_EXCEPTION

    # Always re-verify against DB so deleted users are rejected
    user = await UserService.get_by_id(db, user_id, tenant_id)
    if user is None:
        logger.warning("User from valid JWT not found in DB", user_id=user_id)
        raise _CREDENTIALS_EXCEPTION

    tenant = await TenantService.get_by_id(db, tenant_id)
    if tenant is None:
        raise _CREDENTIALS_EXCEPTION
    if tenant.is_suspended:
        raise ForbiddenError("This organization has been suspended")

    resolved_slug = getattr(request.state, "tenant_slug", None)
    if resolved_slug and resolved_slug != tenant.slug:
        logger.warning(
            "Session used on another tenant's host",
            user_id=user.id,
            token_tenant=tenant.slug,
            host_tenant=resolved_slug,
        )
        raise ForbiddenError("This session belongs to a different organization")

    bind_request_context(user_id=user.id, tenant_id=tenant.id)
    return CurrentUser(user=user, tenant=tenant)


async def get_dal_context(
    current: Annotated[CurrentUser, Depends(get_current_user)],
) -> DALContext:
    return current.ctx


def require_capability(action: Action):
    """Dependency factory: the current user, provided their role holds `action`."""

    async def checker(
        current: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        authorize(current.user.role, action)
        return current

    return checker


async def get_request_tenant(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Tenant:
    """The tenant the request host resolved to. 404 when there is none."""
    tenant = await TenantService.get_by_slug(db, getattr(request.state, "tenant_slug", None))
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return tenant


# ── Platform admin ───────────────────────────────────────────────────────────

async def get_admin_context(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AdminContext:
    ctx = await AdminSessionService.validate(db, request.cookies.get(ADMIN_SESSION_COOKIE))
    if ctx is None:
        raise UnauthorizedError("Admin authentication required")
    bind_request_context(admin_id=ctx.admin.id)
    return ctx


def require_admin_capability(action: AdminAction):

    async def checker(
        ctx: Annotated[AdminContext, Depends(get_admin_context)],
    ) -> AdminContext:
        authorize_admin(ctx.admin.role, action)
        return ctx

    return checker
