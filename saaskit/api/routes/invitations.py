"""
api/routes/invitations.py
-------------------------
Team invitations.

GET    /invitations                — Owner/admin: pending (or all) invitations
POST   /invitations                — Owner/admin: invite by email
DELETE /invitations/{id}           — Owner/admin: revoke a pending invitation
GET    /invitations/token/{token}  — Public: what an invite link points at
POST   /invitations/accept         — Public: redeem a token, creating the user

Outside production, when the invitation email could not be sent, the
token and link are returned to the inviter so the flow stays testable.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.config import settings
from saaskit.core.errors import NotFoundError
from saaskit.core.logging import get_logger
from saaskit.core.permissions import Action
from saaskit.core.security import hash_password
from saaskit.core.tenant_resolver import get_tenant_url
from saaskit.db.base import utcnow
from saaskit.db.session import get_db
from saaskit.dependencies import CurrentUser, require_capability
from saaskit.schemas.invitation import (
    InvitationAccept,
    InvitationAccepted,
    InvitationCreate,
    InvitationCreated,
    InvitationRead,
    InvitationTokenInfo,
)
from saaskit.services.email_service import (
    EmailSender,
    get_email_sender,
    invitation_email,
    welcome_email,
)
from saaskit.services.invitation_service import InvitationService
from saaskit.services.tenant_service import TenantService

logger = get_logger(__name__)

router = APIRouter(prefix="/invitations", tags=["Invitations"])


def invite_url(tenant_slug: str, token: str) -> str:
    return get_tenant_url(tenant_slug, f"/invite/{token}")


@router.get("", response_model=list[InvitationRead], summary="List invitations")
async def list_invitations(
    db: Annotated[AsyncSession, Depends(get_db)],
    current: Annotated[CurrentUser, Depends(require_capability(Action.invitation_read))],
    include_all: bool = Query(default=False, description="Include non-pending invitations"),
) -> list[InvitationRead]:
    if include_all:
        invitations = await InvitationService.list_invitations(db, current.ctx)
    else:
        invitations = await InvitationService.list_pending_invitations(db, current.ctx)
    return [InvitationRead.model_validate(i) for i in invitations]


@router.post(
    "",
    response_model=InvitationCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Invite someone to the current tenant",
)
async def create_invitation(
    body: InvitationCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: Annotated[CurrentUser, Depends(require_capability(Action.invitation_create))],
    sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> InvitationCreated:
    invitation = await InvitationService.create_invitation(
        db, current.ctx, body.email, body.role
    )
    url = invite_url(current.tenant.slug, invitation.token)
    result = await sender.send(
        invitation_email(
            to=invitation.email,
            tenant_name=current.tenant.name,
            inviter_name=current.user.name,
            role=invitation.role,
            invite_url=url,
        )
    )
    if not result.success:
        logger.warning(
            "Invitation email not delivered",
            invitation_id=invitation.id,
            error=result.error,
        )

    expose = not result.success and not settings.is_production
    return InvitationCreated(
        invitation=InvitationRead.model_validate(invitation),
        email_sent=result.success,
        dev_token=invitation.token if expose else None,
        dev_invite_url=url if expose else None,
    )


@router.delete(
    "/{invitation_id}",
    response_model=InvitationRead,
    summary="Revoke a pending invitation",
)
async def revoke_invitation(
    invitation_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: Annotated[CurrentUser, Depends(require_capability(Action.invitation_revoke))],
) -> InvitationRead:
    invitation = await InvitationService.revoke_invitation(db, current.ctx, invitation_id)
    return InvitationRead.model_validate(invitation)


@router.get(
    "/token/{token}",
    response_model=InvitationTokenInfo,
    summary="Describe an invitation link (public)",
)
async def lookup_invitation(
    token: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> InvitationTokenInfo:
    invitation = await InvitationService.get_by_token(db, token)
    if invitation is None:
        raise NotFoundError("Invitation not found")
    tenant = await TenantService.get_by_id_or_raise(db, invitation.tenant_id)
    return InvitationTokenInfo(
        email=invitation.email,
        role=invitation.role,
        status=invitation.status,
        tenant_name=tenant.name,
        tenant_slug=tenant.slug,
        expired=invitation.expires_at <= utcnow(),
    )


@router.post(
    "/accept",
    response_model=InvitationAccepted,
    status_code=status.HTTP_201_CREATED,
    summary="Accept an invitation and create the account (public)",
)
async def accept_invitation(
    body: InvitationAccept,
    db: Annotated[AsyncSession, Depends(get_db)],
    sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> InvitationAccepted:
    user, invitation = await InvitationService.accept_invitation(
        db, body.token, body.name, hash_password(body.password)
    )
    tenant = await TenantService.get_by_id_or_raise(db, invitation.tenant_id)
    login_url = get_tenant_url(tenant.slug, "/login")

    result = await sender.send(welcome_email(user.email, user.name, tenant.name, login_url))
    if not result.success:
        logger.warning("Welcome email not delivered", user_id=user.id, error=result.error)

    return InvitationAccepted(
        user_id=user.id,
        email=user.email,
        tenant_slug=tenant.slug,
        login_url=login_url,
    )
