"""
services/user_service.py
------------------------
IdentityStore: tenant-scoped user records and password credentials.

All queries are scoped by tenant_id to enforce strict data isolation. The
only unscoped reads live under "Platform admin" and are reachable from the
/admin routes alone.
"""

from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.errors import ConflictError, NotFoundError, ValidationError
from saaskit.core.logging import get_logger
from saaskit.core.security import hash_password, verify_password
from saaskit.models.tenant import Tenant
from saaskit.models.user import User, UserRole
from saaskit.services.context import DALContext, validate_context

logger = get_logger(__name__)


class UserService:

    @staticmethod
    async def get_by_email(
        db: AsyncSession, email: str, tenant_id: str
    ) -> User | None:
        """Email lookup is case-insensitive; emails are stored lower-cased."""
        result = await db.execute(
            select(User).where(User.email == email.lower(), User.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id(
        db: AsyncSession, user_id: str, tenant_id: str
    ) -> User | None:
        result = await db.execute(
            select(User).where(User.id == user_id, User.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_user(
        db: AsyncSession,
        tenant_id: str,
        email: str,
        name: str,
        role: UserRole = UserRole.member,
        password_hash: Optional[str] = None,
    ) -> User:
        """
        Insert a user into a tenant. password_hash=None creates an
        OAuth-only account.
        Raises ConflictError on a duplicate (email, tenant).
        """
        user = User(
            email=email.lower(),
            name=name,
            role=UserRole(role).value,
            password_hash=password_hash,
            tenant_id=tenant_id,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError("User already exists in this organization")
        logger.info("User created", user_id=user.id, tenant_id=tenant_id, role=user.role)
        return user

    @staticmethod
    async def list_users_in_tenant(db: AsyncSession, tenant_id: str) -> list[User]:
        result = await db.execute(
            select(User).where(User.tenant_id == tenant_id).order_by(User.created_at)
        )
        return list(result.scalars().all())

    # ── Self-service ─────────────────────────────────────────────────────────

    @staticmethod
    async def update_profile(db: AsyncSession, ctx: DALContext, name: str) -> User:
        validate_context(ctx)
        await db.execute(
            update(User)
            .where(User.id == ctx.user_id, User.tenant_id == ctx.tenant_id)
            .values(name=name)
        )
        user = await UserService.get_by_id(db, ctx.user_id, ctx.tenant_id)
        if user is None:
            raise NotFoundError("User not found")
        await db.refresh(user)
        return user

    @staticmethod
    async def change_password(
        db: AsyncSession, ctx: DALContext, current_password: str, new_password: str
    ) -> None:
        validate_context(ctx)
        user = await UserService.get_by_id(db, ctx.user_id, ctx.tenant_id)
        if user is None:
            raise NotFoundError("User not found")
        if not user.password_hash:
            raise ValidationError(
                "This account signs in with an external provider and has no password"
            )
        if not verify_password(current_password, user.password_hash):
            raise ValidationError(
                "Current password is incorrect",
                field_errors={"current_password": ["Current password is incorrect"]},
            )
        await UserService.set_password(db, user.id, user.tenant_id, new_password)
        logger.info("Password changed", user_id=user.id, tenant_id=user.tenant_id)

    @staticmethod
    async def set_password(
        db: AsyncSession, user_id: str, tenant_id: str, new_password: str
    ) -> None:
        await db.execute(
            update(User)
            .where(User.id == user_id, User.tenant_id == tenant_id)
            .values(password_hash=hash_password(new_password))
        )

    # ── Platform admin ───────────────────────────────────────────────────────

    @staticmethod
    async def get_with_tenant(
        db: AsyncSession, user_id: str
    ) -> tuple[User, Tenant] | None:
        result = await db.execute(
            select(User, Tenant).join(Tenant, User.tenant_id == Tenant.id).where(User.id == user_id)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    @staticmethod
    async def list_all_users(
        db: AsyncSession,
        skip: int = 0,
        limit: int = 50,
        search: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> tuple[int, list[tuple[User, Tenant]]]:
        filters = []
        if tenant_id:
            filters.append(User.tenant_id == tenant_id)
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(User.email.like(pattern), func.lower(User.name).like(pattern)))

        total = (
            await db.execute(select(func.count()).select_from(User).where(*filters))
        ).scalar_one()
        result = await db.execute(
            select(User, Tenant)
            .join(Tenant, User.tenant_id == Tenant.id)
            .where(*filters)
            .order_by(User.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return total, [(row[0], row[1]) for row in result.all()]
