"""
services/admin_session_service.py
---------------------------------
AdminSessionAuthority: login state machine and sliding admin sessions.

Admin sessions are rows in admin_sessions addressed by a random token in
the `admin_session` cookie. They never mix with tenant sessions.

Two independent timers guard a session:
  - expires_at:        hard expiry, 30 minutes from the last activity
  - last_activity_at:  idle cutoff, 30 minutes
Whichever fires first wins. An idle session is deleted on sight. Every
successful validation slides both forward.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.errors import AccountDeactivatedError, AccountLockedError, UnauthorizedError
from saaskit.core.logging import get_logger
from saaskit.core.security import generate_token
from saaskit.db.base import utcnow
from saaskit.models.admin import AdminSession, SuperAdmin
from saaskit.models.audit_log import AuditAction, AuditTargetType
from saaskit.services.admin_service import AdminService
from saaskit.services.audit_service import AuditService

logger = get_logger(__name__)

ADMIN_SESSION_COOKIE = "admin_session"
SESSION_DURATION = timedelta(minutes=30)
INACTIVITY_TIMEOUT = timedelta(minutes=30)


@dataclass
class AdminContext:
    admin: SuperAdmin
    session: AdminSession


class AdminSessionService:

    @staticmethod
    async def create(
        db: AsyncSession, admin_id: str, now: Optional[datetime] = None
    ) -> AdminSession:
        now = now or utcnow()
        session = AdminSession(
            admin_id=admin_id,
            token=generate_token(),
            expires_at=now + SESSION_DURATION,
            last_activity_at=now,
        )
        db.add(session)
        await db.flush()
        return session

    @staticmethod
    async def validate(
        db: AsyncSession, token: Optional[str], now: Optional[datetime] = None
    ) -> AdminContext | None:
        """
        The live session and its (active) admin, or None. Slides the
        session forward on success.
        """
        if not token:
            return None
        now = now or utcnow()

        result = await db.execute(
            select(AdminSession, SuperAdmin)
            .join(SuperAdmin, AdminSession.admin_id == SuperAdmin.id)
            .where(AdminSession.token == token, AdminSession.expires_at > now)
        )
        row = result.first()
        if row is None:
            return None
        session, admin = row[0], row[1]

        if now - session.last_activity_at > INACTIVITY_TIMEOUT:
            await db.execute(delete(AdminSession).where(AdminSession.id == session.id))
            # Survives the rollback get_db does once the 401 is raised
            await db.commit()
            logger.info("Admin session expired from inactivity", admin_id=admin.id)
            return None

        if not admin.is_active:
            return None

        await AdminSessionService.update_activity(db, session, now)
        return AdminContext(admin=admin, session=session)

    @staticmethod
    async def update_activity(
        db: AsyncSession, session: AdminSession, now: Optional[datetime] = None
    ) -> None:
        now = now or utcnow()
        await db.execute(
            update(AdminSession)
            .where(AdminSession.id == session.id)
            .values(last_activity_at=now, expires_at=now + SESSION_DURATION)
        )
        await db.refresh(session)

    @staticmethod
    async def delete(db: AsyncSession, token: str) -> None:
        await db.execute(delete(AdminSession).where(AdminSession.token == token))

    @staticmethod
    async def delete_all_for_admin(db: AsyncSession, admin_id: str) -> None:
        await db.execute(delete(AdminSession).where(AdminSession.admin_id == admin_id))

    @staticmethod
    async def cleanup_expired(db: AsyncSession, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        result = await db.execute(
            delete(AdminSession)
            .where(
                or_(
                    AdminSession.expires_at <= now,
                    AdminSession.last_activity_at <= now - INACTIVITY_TIMEOUT,
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ── Login ────────────────────────────────────────────────────────────────

    @staticmethod
    async def login(
        db: AsyncSession, email: str, password: str, now: Optional[datetime] = None
    ) -> AdminContext:
        """
        Order matters: an unknown email is a generic 401; a locked account
        is 423 whether or not the password is right; a deactivated account
        is rejected before the password is checked.
        """
        now = now or utcnow()
        admin = await AdminService.find_by_email(db, email)
        if admin is None:
            logger.info("Admin login rejected", reason="unknown_email")
            raise UnauthorizedError("Invalid email or password")

        if AdminService.is_locked(admin, now):
            logger.info("Admin login rejected", reason="locked", admin_id=admin.id)
            raise AccountLockedError()

        if not admin.is_active:
            raise AccountDeactivatedError()

        if not AdminService.verify_password(admin, password):
            await AdminService.record_failed_login(db, admin.id, now)
            # Survives the rollback get_db does once we raise
            await db.commit()
            logger.info("Admin login rejected", reason="bad_password", admin_id=admin.id)
            raise UnauthorizedError("Invalid email or password")

        await AdminService.record_successful_login(db, admin.id, now)
        session = await AdminSessionService.create(db, admin.id, now)
        await db.refresh(admin)
        await AuditService.record(
            db, admin, AuditAction.admin_login, AuditTargetType.admin, admin.id
        )
        logger.info("Admin signed in", admin_id=admin.id)
        return AdminContext(admin=admin, session=session)

    @staticmethod
    async def logout(db: AsyncSession, ctx: AdminContext) -> None:
        await AdminSessionService.delete(db, ctx.session.token)
        await AuditService.record(
            db, ctx.admin, AuditAction.admin_logout, AuditTargetType.admin, ctx.admin.id
        )
        logger.info("Admin signed out", admin_id=ctx.admin.id)
