"""
api/routes/auth.py
------------------
Authentication endpoints for tenant users.

POST /auth/signup           — Create a tenant and its owner account.
POST /auth/login            — Exchange credentials for a session token (JSON).
POST /auth/token            — Same, as OAuth2 form data (Swagger UI).
POST /auth/logout           — Clear the session cookie.
GET  /auth/me               — The authenticated user.
POST /auth/forgot-password  — Email a reset link (same answer whether or not
                              the account exists).
POST /auth/reset-password   — Set a new password with a reset token.
POST /auth/change-password  — Change password, given the current one.

The tenant for login / forgot-password comes from the request host
(request.state.tenant_slug); a tenant_slug in the body is only used when
the host is the root domain.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.config import settings
from saaskit.core.logging import get_logger
from saaskit.core.tenant_resolver import get_tenant_url, is_local_host, strip_port
from saaskit.db.session import get_db
from saaskit.dependencies import SESSION_COOKIE, CurrentUser, get_current_user
from saaskit.models.user import User
from saaskit.schemas.user import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    MeResponse,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    TokenResponse,
    UserRead,
)
from saaskit.services.auth_service import AuthService, Identity
from saaskit.services.email_service import EmailSender, get_email_sender, password_reset_email
from saaskit.services.password_reset_service import PasswordResetService
from saaskit.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

FORGOT_PASSWORD_MESSAGE = (
    "If an account exists with that email, a password reset link has been sent."
)


def set_session_cookie(response: Response, token: str, max_age: int) -> None:
    """Scoped to the root domain so every tenant subdomain receives it."""
    root = strip_port(settings.ROOT_DOMAIN)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=max_age,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        domain=None if is_local_host(root) else f".{root}",
        path="/",
    )


async def _issue_session(
    db: AsyncSession, identity: Identity, response: Response
) -> TokenResponse:
    token, expires_in = AuthService.issue_session_token(identity)
    set_session_cookie(response, token, expires_in)
    user = await UserService.get_by_id(db, identity.user_id, identity.tenant_id)
    return TokenResponse(
        access_token=token,
        token_type="bearer",
        expires_in=expires_in,
        tenant_slug=identity.tenant_slug,
        user=UserRead.model_validate(user),
    )


def _tenant_slug_for(request: Request, body_slug: Optional[str]) -> Optional[str]:
    return request.state.tenant_slug or (body_slug.strip().lower() if body_slug else None)


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new organization and its owner",
)
async def signup(
    body: SignupRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SignupResponse:
    """
    Public endpoint. Tenant and owner are created in one transaction;
    409 when the slug is taken.
    """
    identity = await AuthService.signup(db, body)
    user = await UserService.get_by_id(db, identity.user_id, identity.tenant_id)
    return SignupResponse(
        user=UserRead.model_validate(user),
        tenant_slug=identity.tenant_slug,
        tenant_url=get_tenant_url(identity.tenant_slug, "/login"),
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and receive a session token",
)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenResponse:
    identity = await AuthService.authorize(
        db, body.email, body.password, _tenant_slug_for(request, body.tenant_slug)
    )
    return await _issue_session(db, identity, response)


@router.post(
    "/token",
    response_model=TokenResponse,
    summary="OAuth2 password flow (Swagger UI)",
)
async def login_form(
    # The "username" field contains the email address.
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenResponse:
    """
    In Swagger UI: open the docs on the tenant's host (or with ?tenant=slug
    on localhost) and use the Authorize button.
    """
    identity = await AuthService.authorize(
        db, form_data.username, form_data.password, request.state.tenant_slug
    )
    return await _issue_session(db, identity, response)


@router.post("/logout", response_model=MessageResponse, summary="Clear the session cookie")
async def logout(response: Response) -> MessageResponse:
    root = strip_port(settings.ROOT_DOMAIN)
    response.delete_cookie(
        SESSION_COOKIE,
        domain=None if is_local_host(root) else f".{root}",
        path="/",
    )
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=MeResponse, summary="Get the currently authenticated user")
async def get_me(
    current: Annotated[CurrentUser, Depends(get_current_user)],
) -> MeResponse:
    user: User = current.user
    return MeResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        tenant_id=current.tenant.id,
        tenant_slug=current.tenant.slug,
        has_password=bool(user.password_hash),
    )


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    summary="Request a password reset email",
)
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> ForgotPasswordResponse:
    issued = await PasswordResetService.create_for_email(
        db, body.email, _tenant_slug_for(request, body.tenant_slug)
    )
    if issued is None:
        return ForgotPasswordResponse(message=FORGOT_PASSWORD_MESSAGE)

    raw_token, user, tenant = issued
    reset_url = get_tenant_url(tenant.slug, f"/reset-password?token={raw_token}")
    result = await sender.send(password_reset_email(user.email, user.name, reset_url))
    if not result.success:
        logger.warning("Password reset email not delivered", user_id=user.id, error=result.error)

    return ForgotPasswordResponse(
        message=FORGOT_PASSWORD_MESSAGE,
        dev_token=None if settings.is_production else raw_token,
    )


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Set a new password using a reset token",
)
async def reset_password(
    body: ResetPasswordRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    await PasswordResetService.reset_password(db, body.token, body.password)
    return MessageResponse(message="Password has been reset. You can now sign in.")


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change the current user's password",
)
async def change_password(
    body: ChangePasswordRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: Annotated[CurrentUser, Depends(get_current_user)],
) -> MessageResponse:
    await UserService.change_password(db, current.ctx, body.current_password, body.password)
    return MessageResponse(message="Password updated")
