"""
services/admin_service.py
-------------------------
Platform admin accounts: roster, lockout counters and setup tokens.

Lockout: 5 consecutive failures lock the account for 30 minutes. The
counter is bumped with a single UPDATE ... SET n = n + 1 so concurrent
failures cannot under-count.

Setup: a new admin has no password. A single-use token valid for 48 hours
lets them choose one; consuming it is a conditional UPDATE on
used_at IS NULL so it can only succeed once.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import bindparam, case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from saaskit.core.logging import get_logger
from saaskit.core.security import generate_token, hash_password, verify_password
from saaskit.db.base import UTCDateTime, utcnow
from saaskit.models.admin import AdminRole, AdminSetupToken, SuperAdmin

logger = get_logger(__name__)

MAX_FAILED_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=30)
SETUP_TOKEN_TTL = timedelta(hours=48)


class AdminService:

    # ── Lookups ──────────────────────────────────────────────────────────────

    @staticmethod
    async def find_by_email(db: AsyncSession, email: str) -> SuperAdmin | None:
        result = await db.execute(
            select(SuperAdmin).where(SuperAdmin.email == email.lower())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def find_by_id(db: AsyncSession, admin_id: str) -> SuperAdmin | None:
        result = await db.execute(select(SuperAdmin).where(SuperAdmin.id == admin_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(db: AsyncSession) -> list[SuperAdmin]:
        result = await db.execute(select(SuperAdmin).order_by(SuperAdmin.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def count_primary_admins(db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(SuperAdmin)
            .where(
                SuperAdmin.role == AdminRole.primary_admin.value,
                SuperAdmin.is_active.is_(True),
            )
        )
        return result.scalar_one()

    # ── Roster ───────────────────────────────────────────────────────────────

    @staticmethod
    async def create(
        db: AsyncSession,
        email: str,
        name: str,
        role: AdminRole = AdminRole.admin,
        password: Optional[str] = None,
    ) -> SuperAdmin:
        email = email.lower()
        if await AdminService.find_by_email(db, email) is not None:
            raise ConflictError("An admin with this email already exists")

        admin = SuperAdmin(
            email=email,
            name=name,
            role=AdminRole(role).value,
            password_hash=hash_password(password) if password else None,
            is_active=True,
            failed_login_attempts=0,
        )
        db.add(admin)
        await db.flush()
        logger.info("Admin created", admin_id=admin.id, role=admin.role)
        return admin

    @staticmethod
    async def update(
        db: AsyncSession,
        actor: SuperAdmin,
        admin_id: str,
        name: Optional[str] = None,
        role: Optional[AdminRole] = None,
        is_active: Optional[bool] = None,
    ) -> tuple[SuperAdmin, dict]:
        """
        Rename, change role or (de)activate an admin. Returns the admin and
        the fields that actually changed.

        Nobody may demote or deactivate themselves, and the last active
        primary_admin cannot be demoted or deactivated.
        """
        target = await AdminService.find_by_id(db, admin_id)
        if target is None:
            raise NotFoundError("Admin not found")

        requested = {
            "name": name,
            "role": AdminRole(role).value if role is not None else None,
            "is_active": is_active,
        }
        changes = {
            field: value
            for field, value in requested.items()
            if value is not None and getattr(target, field) != value
        }
        if not changes:
            return target, {}

        loses_access = changes.get("is_active") is False
        demoted = "role" in changes and changes["role"] != AdminRole.primary_admin.value
        if actor.id == admin_id and (loses_access or demoted):
            raise ValidationError("You cannot demote or deactivate your own account")
        if (
            target.role == AdminRole.primary_admin.value
            and target.is_active
            and (loses_access or demoted)
            and await AdminService.count_primary_admins(db) <= 1
        ):
            raise ForbiddenError("Cannot demote or deactivate the last primary admin")

        await db.execute(update(SuperAdmin).where(SuperAdmin.id == admin_id).values(**changes))
        await db.refresh(target)
        logger.info("Admin updated", admin_id=admin_id, by=actor.id, fields=sorted(changes))
        return target, changes

    @staticmethod
    async def delete(db: AsyncSession, actor: SuperAdmin, admin_id: str) -> SuperAdmin:
        """
        Self-deletion is always rejected, as is deleting the last
        primary_admin. Sessions and setup tokens cascade.
        """
        if actor.id == admin_id:
            raise ValidationError("You cannot delete your own account")

        target = await AdminService.find_by_id(db, admin_id)
        if target is None:
            raise NotFoundError("Admin not found")

        if (
            target.role == AdminRole.primary_admin.value
            and target.is_active
            and await AdminService.count_primary_admins(db) <= 1
        ):
            raise ForbiddenError("Cannot delete the last primary admin")

        await db.execute(delete(SuperAdmin).where(SuperAdmin.id == admin_id))
        logger.info("Admin deleted", admin_id=admin_id, by=actor.id)
        return target

    @staticmethod
    async def change_password(db: AsyncSession, admin_id: str, new_password: str) -> None:
        await db.execute(
            update(SuperAdmin)
            .where(SuperAdmin.id == admin_id)
            .values(password_hash=hash_password(new_password))
        )

    # ── Credentials & lockout ────────────────────────────────────────────────

    @staticmethod
    def verify_password(admin: SuperAdmin, password: str) -> bool:
        """False for admins that have not completed setup."""
        return verify_password(password, admin.password_hash)

    @staticmethod
    def is_locked(admin: SuperAdmin, now: Optional[datetime] = None) -> bool:
        return admin.locked_until is not None and admin.locked_until > (now or utcnow())

    @staticmethod
    async def record_failed_login(
        db: AsyncSession, admin_id: str, now: Optional[datetime] = None
    ) -> SuperAdmin:
        """Atomically count a failure and lock on reaching the threshold."""
        now = now or utcnow()
        new_count = SuperAdmin.failed_login_attempts + 1
        await db.execute(
            update(SuperAdmin)
            .where(SuperAdmin.id == admin_id)
            .values(
                failed_login_attempts=new_count,
                locked_until=case(
                    (
                        new_count >= MAX_FAILED_ATTEMPTS,
                        bindparam("lock_until", now + LOCKOUT_DURATION, type_=UTCDateTime()),
                    ),
                    else_=SuperAdmin.locked_until,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        admin = await AdminService.find_by_id(db, admin_id)
        await db.refresh(admin)
        if admin.failed_login_attempts >= MAX_FAILED_ATTEMPTS:
            logger.warning(
                "Admin account locked",
                admin_id=admin_id,
                attempts=admin.failed_login_attempts,
                locked_until=admin.locked_until.isoformat() if admin.locked_until else None,
            )
        return admin

    @staticmethod
    async def record_successful_login(
        db: AsyncSession, admin_id: str, now: Optional[datetime] = None
    ) -> None:
        await db.execute(
            update(SuperAdmin)
            .where(SuperAdmin.id == admin_id)
            .values(failed_login_attempts=0, locked_until=None, last_login_at=now or utcnow())
        )

    # ── Setup tokens ─────────────────────────────────────────────────────────

    @staticmethod
    async def create_setup_token(
        db: AsyncSession, admin_id: str, now: Optional[datetime] = None
    ) -> AdminSetupToken:
        now = now or utcnow()
        token = AdminSetupToken(
            admin_id=admin_id,
            token=generate_token(),
            expires_at=now + SETUP_TOKEN_TTL,
        )
        db.add(token)
        await db.flush()
        return token

    @staticmethod
    async def get_valid_setup_token(
        db: AsyncSession, token: str, now: Optional[datetime] = None
    ) -> tuple[AdminSetupToken, SuperAdmin] | None:
        result = await db.execute(
            select(AdminSetupToken, SuperAdmin)
            .join(SuperAdmin, AdminSetupToken.admin_id == SuperAdmin.id)
            .where(
                AdminSetupToken.token == token,
                AdminSetupToken.used_at.is_(None),
                AdminSetupToken.expires_at > (now or utcnow()),
            )
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    @staticmethod
    async def complete_setup(
        db: AsyncSession, token: str, password: str, now: Optional[datetime] = None
    ) -> SuperAdmin:
        now = now or utcnow()
        result = await db.execute(
            select(AdminSetupToken).where(AdminSetupToken.token == token)
        )
        setup = result.scalar_one_or_none()
        if setup is None:
            raise NotFoundError("Invalid setup link")
        if setup.used_at is not None:
            raise ValidationError("This setup link has already been used")
        if setup.expires_at <= now:
            raise ValidationError("This setup link has expired")

        admin = await AdminService.find_by_id(db, setup.admin_id)
        if admin is None:
            raise NotFoundError("Invalid setup link")
        if admin.password_hash:
            raise ValidationError("Account already set up")

        consumed = await db.execute(
            update(AdminSetupToken)
            .where(AdminSetupToken.id == setup.id, AdminSetupToken.used_at.is_(None))
            .values(used_at=now)
        )
        if consumed.rowcount != 1:
            raise ValidationError("This setup link has already been used")

        await AdminService.change_password(db, admin.id, password)
        await db.refresh(admin)
        logger.info("Admin setup completed", admin_id=admin.id)
        return admin
