"""
services/password_reset_service.py
----------------------------------
Password reset tokens.

The raw token (token_hex(32)) only ever exists in the emailed link; the
database keeps its SHA-256. Tokens live for one hour and are single use.
Issuing a new token retires every earlier unused token for that user.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.errors import ValidationError
from saaskit.core.logging import get_logger
from saaskit.core.security import generate_token, hash_token
from saaskit.db.base import utcnow
from saaskit.models.password_reset import PasswordResetToken
from saaskit.models.tenant import Tenant
from saaskit.models.user import User
from saaskit.services.tenant_service import TenantService
from saaskit.services.user_service import UserService

logger = get_logger(__name__)

RESET_TOKEN_TTL = timedelta(hours=1)


class PasswordResetService:

    @staticmethod
    async def create_token(
        db: AsyncSession,
        user_id: str,
        tenant_id: str,
        now: Optional[datetime] = None,
    ) -> str:
        """Returns the raw token; only its hash is stored."""
        now = now or utcnow()
        await db.execute(
            update(PasswordResetToken)
            .where(
                PasswordResetToken.user_id == user_id,
                PasswordResetToken.used_at.is_(None),
            )
            .values(used_at=now)
        )
        raw = generate_token()
        db.add(
            PasswordResetToken(
                token=hash_token(raw),
                user_id=user_id,
                tenant_id=tenant_id,
                expires_at=now + RESET_TOKEN_TTL,
            )
        )
        await db.flush()
        logger.info("Password reset token issued", user_id=user_id, tenant_id=tenant_id)
        return raw

    @staticmethod
    async def create_for_email(
        db: AsyncSession,
        email: str,
        tenant_slug: Optional[str],
        now: Optional[datetime] = None,
    ) -> Optional[tuple[str, User, Tenant]]:
        """
        None when the tenant or user does not exist. The route answers the
        same way either way so the endpoint cannot be used to discover accounts.
        """
        tenant = await TenantService.get_by_slug(db, tenant_slug)
        if tenant is None or tenant.is_suspended:
            return None
        user = await UserService.get_by_email(db, email, tenant.id)
        if user is None:
            return None
        raw = await PasswordResetService.create_token(db, user.id, tenant.id, now=now)
        return raw, user, tenant

    @staticmethod
    async def get_valid_token(
        db: AsyncSession, raw_token: str, now: Optional[datetime] = None
    ) -> PasswordResetToken | None:
        now = now or utcnow()
        result = await db.execute(
            select(PasswordResetToken).where(
                PasswordResetToken.token == hash_token(raw_token),
                PasswordResetToken.used_at.is_(None),
                PasswordResetToken.expires_at > now,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def invalidate_token(
        db: AsyncSession, token_id: str, now: Optional[datetime] = None
    ) -> bool:
        """Mark used. False if it was already used (lost a race)."""
        result = await db.execute(
            update(PasswordResetToken)
            .where(
                PasswordResetToken.id == token_id,
                PasswordResetToken.used_at.is_(None),
            )
            .values(used_at=now or utcnow())
        )
        return result.rowcount == 1

    @staticmethod
    async def reset_password(
        db: AsyncSession,
        raw_token: str,
        new_password: str,
        now: Optional[datetime] = None,
    ) -> str:
        """Consume the token and set the password. Returns the user id."""
        token = await PasswordResetService.get_valid_token(db, raw_token, now=now)
        if token is None:
            raise ValidationError("Invalid or expired reset link")
        if not await PasswordResetService.invalidate_token(db, token.id, now=now):
            raise ValidationError("Invalid or expired reset link")
        await UserService.set_password(db, token.user_id, token.tenant_id, new_password)
        logger.info("Password reset", user_id=token.user_id, tenant_id=token.tenant_id)
        return token.user_id
