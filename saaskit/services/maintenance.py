"""
services/maintenance.py
-----------------------
Optional sweep for rows that lazy expiry leaves behind.

Nothing in the request path depends on this running: every expiry is
checked at use time. The sweep only keeps tables small. Run it from cron
via sweep_expired.py.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.logging import get_logger
from saaskit.db.base import utcnow
from saaskit.models.admin import AdminSetupToken
from saaskit.models.invitation import Invitation, InvitationStatus
from saaskit.models.password_reset import PasswordResetToken
from saaskit.services.admin_session_service import AdminSessionService

logger = get_logger(__name__)


async def sweep_expired(db: AsyncSession, now: Optional[datetime] = None) -> dict[str, int]:
    now = now or utcnow()

    invitations = await db.execute(
        update(Invitation)
        .where(
            Invitation.status == InvitationStatus.pending.value,
            Invitation.expires_at <= now,
        )
        .values(status=InvitationStatus.expired.value)
        .execution_options(synchronize_session=False)
    )
    sessions = await AdminSessionService.cleanup_expired(db, now)
    reset_tokens = await db.execute(
        delete(PasswordResetToken)
        .where(
            or_(
                PasswordResetToken.used_at.is_not(None),
                PasswordResetToken.expires_at <= now,
            )
        )
        .execution_options(synchronize_session=False)
    )
    setup_tokens = await db.execute(
        delete(AdminSetupToken)
        .where(
            or_(
                AdminSetupToken.used_at.is_not(None),
                AdminSetupToken.expires_at <= now,
            )
        )
        .execution_options(synchronize_session=False)
    )

    counts = {
        "invitations_expired": invitations.rowcount,
        "admin_sessions_deleted": sessions,
        "reset_tokens_deleted": reset_tokens.rowcount,
        "setup_tokens_deleted": setup_tokens.rowcount,
    }
    logger.info("Expired rows swept", **counts)
    return counts
