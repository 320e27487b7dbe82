"""
services/invitation_service.py
------------------------------
Team invitations.

    pending ──accept──▶ accepted
       │ ──revoke──▶ revoked
       └ ──redeem after expires_at──▶ expired

Only pending rows change state. Expiry is lazy: an out-of-date row is
flipped to 'expired' when someone tries to redeem it, and that flip is
committed even though the redemption itself is rejected.

Accepting flips the invitation with a conditional UPDATE (status must
still be 'pending') and inserts the user in the same transaction, so two
concurrent redemptions of one token produce exactly one user.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.errors import ForbiddenError, NotFoundError, ValidationError
from saaskit.core.logging import get_logger
from saaskit.core.permissions import Action, authorize, can_invite_role
from saaskit.core.security import generate_url_token
from saaskit.db.base import utcnow
from saaskit.models.invitation import Invitation, InvitationStatus
from saaskit.models.user import User, UserRole
from saaskit.services.context import DALContext, validate_context
from saaskit.services.user_service import UserService

logger = get_logger(__name__)

INVITATION_TTL = timedelta(days=7)


class InvitationService:

    @staticmethod
    async def get_by_token(db: AsyncSession, token: str) -> Invitation | None:
        result = await db.execute(select(Invitation).where(Invitation.token == token))
        return result.scalar_one_or_none()

    @staticmethod
    async def find_pending(
        db: AsyncSession, tenant_id: str, email: str, now: Optional[datetime] = None
    ) -> Invitation | None:
        """The pending, unexpired invitation for (tenant, email), if any."""
        result = await db.execute(
            select(Invitation).where(
                Invitation.tenant_id == tenant_id,
                Invitation.email == email.lower(),
                Invitation.status == InvitationStatus.pending.value,
                Invitation.expires_at > (now or utcnow()),
            )
        )
        return result.scalars().first()

    @staticmethod
    async def create_invitation(
        db: AsyncSession,
        ctx: DALContext,
        email: str,
        role: str = UserRole.member.value,
        now: Optional[datetime] = None,
    ) -> Invitation:
        validate_context(ctx)
        authorize(ctx.role, Action.invitation_create)
        if not can_invite_role(ctx.role, role):
            raise ForbiddenError(f"You cannot invite users with the {role} role")

        email = email.lower()
        now = now or utcnow()

        if await UserService.get_by_email(db, email, ctx.tenant_id) is not None:
            raise ValidationError(
                "User already exists in this organization",
                field_errors={"email": ["User already exists in this organization"]},
            )
        if await InvitationService.find_pending(db, ctx.tenant_id, email, now) is not None:
            raise ValidationError(
                "Invitation already sent to this email",
                field_errors={"email": ["Invitation already sent to this email"]},
            )

        invitation = Invitation(
            email=email,
            role=role,
            token=generate_url_token(),
            status=InvitationStatus.pending.value,
            tenant_id=ctx.tenant_id,
            invited_by_id=ctx.user_id,
            expires_at=now + INVITATION_TTL,
        )
        db.add(invitation)
        await db.flush()
        logger.info(
            "Invitation created",
            invitation_id=invitation.id,
            tenant_id=ctx.tenant_id,
            role=role,
        )
        return invitation

    @staticmethod
    async def accept_invitation(
        db: AsyncSession,
        token: str,
        name: str,
        password_hash: str,
        now: Optional[datetime] = None,
    ) -> tuple[User, Invitation]:
        now = now or utcnow()
        invitation = await InvitationService.get_by_token(db, token)
        if invitation is None:
            raise NotFoundError("Invitation not found")

        if invitation.status != InvitationStatus.pending.value:
            raise ValidationError("This invitation is no longer valid")

        if invitation.expires_at <= now:
            await db.execute(
                update(Invitation)
                .where(
                    Invitation.id == invitation.id,
                    Invitation.status == InvitationStatus.pending.value,
                )
                .values(status=InvitationStatus.expired.value)
            )
            # Survives the rollback get_db does once we raise
            await db.commit()
            logger.info("Invitation expired on redemption", invitation_id=invitation.id)
            raise ValidationError("This invitation has expired")

        if await UserService.get_by_email(db, invitation.email, invitation.tenant_id):
            raise ValidationError("User already exists in this organization")

        flipped = await db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation.id,
                Invitation.status == InvitationStatus.pending.value,
            )
            .values(status=InvitationStatus.accepted.value, accepted_at=now)
        )
        if flipped.rowcount != 1:
            raise ValidationError("This invitation is no longer valid")

        user = await UserService.create_user(
            db,
            tenant_id=invitation.tenant_id,
            email=invitation.email,
            name=name,
            role=UserRole(invitation.role),
            password_hash=password_hash,
        )
        await db.refresh(invitation)
        logger.info(
            "Invitation accepted",
            invitation_id=invitation.id,
            user_id=user.id,
            tenant_id=invitation.tenant_id,
        )
        return user, invitation

    @staticmethod
    async def revoke_invitation(
        db: AsyncSession, ctx: DALContext, invitation_id: str
    ) -> Invitation:
        validate_context(ctx)
        authorize(ctx.role, Action.invitation_revoke)

        result = await db.execute(select(Invitation).where(Invitation.id == invitation_id))
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFoundError("Invitation not found")
        if invitation.tenant_id != ctx.tenant_id:
            raise ForbiddenError("Access denied")
        if invitation.status != InvitationStatus.pending.value:
            raise ValidationError("Only pending invitations can be revoked")

        await db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.tenant_id == ctx.tenant_id,
                Invitation.status == InvitationStatus.pending.value,
            )
            .values(status=InvitationStatus.revoked.value)
        )
        await db.refresh(invitation)
        logger.info("Invitation revoked", invitation_id=invitation_id, tenant_id=ctx.tenant_id)
        return invitation

    @staticmethod
    async def list_invitations(db: AsyncSession, ctx: DALContext) -> list[Invitation]:
        validate_context(ctx)
        authorize(ctx.role, Action.invitation_read)
        result = await db.execute(
            select(Invitation)
            .where(Invitation.tenant_id == ctx.tenant_id)
            .order_by(Invitation.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_pending_invitations(
        db: AsyncSession, ctx: DALContext, now: Optional[datetime] = None
    ) -> list[Invitation]:
        validate_context(ctx)
        authorize(ctx.role, Action.invitation_read)
        result = await db.execute(
            select(Invitation)
            .where(
                Invitation.tenant_id == ctx.tenant_id,
                Invitation.status == InvitationStatus.pending.value,
                Invitation.expires_at > (now or utcnow()),
            )
            .order_by(Invitation.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_team_members(db: AsyncSession, ctx: DALContext) -> list[User]:
        validate_context(ctx)
        authorize(ctx.role, Action.team_read)
        return await UserService.list_users_in_tenant(db, ctx.tenant_id)
