"""
api/routes/admin_auth.py
------------------------
Platform admin authentication. Separate cookie (`admin_session`), separate
table, no tenant involved.

POST /admin/auth/login   — 401 unknown/wrong password, 423 locked,
                           401 deactivated; sets the admin cookie.
POST /admin/auth/logout  — Deletes the session, then clears the cookie
                           (always, even if the delete fails).
GET  /admin/auth/me      — Current admin.
GET  /admin/auth/setup   — Is a setup token usable?
POST /admin/auth/setup   — Choose a password with a setup token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.config import settings
from saaskit.core.logging import get_logger
from saaskit.db.session import get_db
from saaskit.dependencies import get_admin_context
from saaskit.models.audit_log import AuditAction, AuditTargetType
from saaskit.schemas.admin import (
    AdminLoginRequest,
    AdminRead,
    AdminSetupRequest,
    SetupTokenInfo,
)
from saaskit.schemas.user import MessageResponse
from saaskit.services.admin_service import AdminService
from saaskit.services.admin_session_service import (
    ADMIN_SESSION_COOKIE,
    SESSION_DURATION,
    AdminContext,
    AdminSessionService,
)
from saaskit.services.audit_service import AuditService

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/auth", tags=["Admin Auth"])


def _set_admin_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        ADMIN_SESSION_COOKIE,
        token,
        max_age=int(SESSION_DURATION.total_seconds()),
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        path="/",
    )


@router.post("/login", response_model=AdminRead, summary="Admin login")
async def login(
    body: AdminLoginRequest,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AdminRead:
    ctx = await AdminSessionService.login(db, body.email, body.password)
    _set_admin_cookie(response, ctx.session.token)
    return AdminRead.model_validate(ctx.admin)


@router.post("/logout", response_model=MessageResponse, summary="Admin logout")
async def logout(
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """
    Session row first, cookie second. The cookie is cleared regardless of
    whether the session could be found or deleted.
    """
    try:
        ctx = await AdminSessionService.validate(db, request.cookies.get(ADMIN_SESSION_COOKIE))
        if ctx is not None:
            await AdminSessionService.logout(db, ctx)
            await db.commit()
    except Exception:
        await db.rollback()
        logger.error("Admin logout could not delete the session", exc_info=True)
    response.delete_cookie(ADMIN_SESSION_COOKIE, path="/")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=AdminRead, summary="Current admin")
async def me(ctx: Annotated[AdminContext, Depends(get_admin_context)]) -> AdminRead:
    return AdminRead.model_validate(ctx.admin)


@router.get("/setup", response_model=SetupTokenInfo, summary="Check a setup token")
async def check_setup_token(
    db: Annotated[AsyncSession, Depends(get_db)],
    token: str = Query(..., min_length=1),
) -> SetupTokenInfo:
    found = await AdminService.get_valid_setup_token(db, token)
    if found is None:
        return SetupTokenInfo(valid=False)
    _, admin = found
    return SetupTokenInfo(valid=not admin.password_hash, email=admin.email, name=admin.name)


@router.post("/setup", response_model=AdminRead, summary="Complete admin account setup")
async def complete_setup(
    body: AdminSetupRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AdminRead:
    admin = await AdminService.complete_setup(db, body.token, body.password)
    await AuditService.record(
        db, admin, AuditAction.admin_setup, AuditTargetType.admin, admin.id
    )
    return AdminRead.model_validate(admin)
