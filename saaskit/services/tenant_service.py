"""
services/tenant_service.py
--------------------------
Business logic for tenant lookup, signup and management.

Service layer is responsible for:
  - Constructing queries
  - Enforcing business rules (slug format, slug uniqueness)
  - Returning domain objects (ORM models) to the route layer
  - Never returning HTTP responses (that's the route's job)

Lookups return None when the tenant does not exist; callers decide whether
that is a 404, a generic login failure or something else.
"""

from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.errors import ConflictError, NotFoundError, ValidationError
from saaskit.core.logging import get_logger
from saaskit.core.permissions import Action, authorize
from saaskit.models.tenant import Tenant, TenantPlan
from saaskit.models.user import User
from saaskit.schemas.common import slug_problems
from saaskit.schemas.tenant import AdminTenantUpdate, TenantCreate
from saaskit.services.context import DALContext, validate_context

logger = get_logger(__name__)


class TenantService:

    # ── Directory lookups ────────────────────────────────────────────────────

    @staticmethod
    async def get_by_slug(db: AsyncSession, slug: Optional[str]) -> Tenant | None:
        if not slug:
            return None
        result = await db.execute(select(Tenant).where(Tenant.slug == slug.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id(db: AsyncSession, tenant_id: str) -> Tenant | None:
        result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id_or_raise(db: AsyncSession, tenant_id: str) -> Tenant:
        tenant = await TenantService.get_by_id(db, tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")
        return tenant

    @staticmethod
    async def is_slug_available(db: AsyncSession, slug: str) -> bool:
        """False for malformed slugs as well as taken ones."""
        if slug_problems(slug):
            return False
        result = await db.execute(select(Tenant.id).where(Tenant.slug == slug))
        return result.scalar_one_or_none() is None

    # ── Creation ─────────────────────────────────────────────────────────────

    @staticmethod
    async def create_tenant(db: AsyncSession, data: TenantCreate) -> Tenant:
        """
        Create a new tenant.
        Raises ValidationError for a malformed slug, ConflictError if taken.
        """
        problems = slug_problems(data.slug)
        if problems:
            raise ValidationError("Invalid tenant slug", field_errors={"slug": problems})

        if not await TenantService.is_slug_available(db, data.slug):
            raise ConflictError("This URL is already taken")

        tenant = Tenant(name=data.name, slug=data.slug, plan=data.plan.value)
        db.add(tenant)
        try:
            await db.flush()  # Trigger DB constraints before commit
        except IntegrityError:
            # Lost a race with a concurrent signup for the same slug
            raise ConflictError("This URL is already taken")
        logger.info("Tenant created", tenant_id=tenant.id, slug=tenant.slug)
        return tenant

    # ── Self-service settings ────────────────────────────────────────────────

    @staticmethod
    async def update_settings(db: AsyncSession, ctx: DALContext, name: str) -> Tenant:
        validate_context(ctx)
        authorize(ctx.role, Action.tenant_update)
        await db.execute(
            update(Tenant).where(Tenant.id == ctx.tenant_id).values(name=name)
        )
        tenant = await TenantService.get_by_id_or_raise(db, ctx.tenant_id)
        await db.refresh(tenant)
        logger.info("Tenant settings updated", tenant_id=tenant.id)
        return tenant

    # ── Platform admin ───────────────────────────────────────────────────────

    @staticmethod
    async def list_tenants(
        db: AsyncSession,
        skip: int = 0,
        limit: int = 50,
        search: Optional[str] = None,
    ) -> tuple[int, list[tuple[Tenant, int]]]:
        """
        Paginated tenants with their user counts, newest first.

        Returns:
            (total_count, [(tenant, user_count), ...])
        """
        filters = []
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(
                or_(func.lower(Tenant.name).like(pattern), Tenant.slug.like(pattern))
            )

        count_result = await db.execute(
            select(func.count()).select_from(Tenant).where(*filters)
        )
        total = count_result.scalar_one()

        user_count = (
            select(func.count(User.id))
            .where(User.tenant_id == Tenant.id)
            .correlate(Tenant)
            .scalar_subquery()
        )
        result = await db.execute(
            select(Tenant, user_count)
            .where(*filters)
            .order_by(Tenant.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return total, [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def count_users(db: AsyncSession, tenant_id: str) -> int:
        result = await db.execute(
            select(func.count()).select_from(User).where(User.tenant_id == tenant_id)
        )
        return result.scalar_one()

    @staticmethod
    async def update_tenant(
        db: AsyncSession, tenant_id: str, data: AdminTenantUpdate
    ) -> tuple[Tenant, dict]:
        """
        Apply an admin edit. Returns the tenant and the {field: new value}
        changes actually made.
        """
        tenant = await TenantService.get_by_id_or_raise(db, tenant_id)
        changes = {}
        if data.name is not None and data.name != tenant.name:
            changes["name"] = data.name
        if data.plan is not None and data.plan.value != tenant.plan:
            changes["plan"] = data.plan.value
        if data.is_suspended is not None and data.is_suspended != tenant.is_suspended:
            changes["is_suspended"] = data.is_suspended

        if changes:
            await db.execute(
                update(Tenant).where(Tenant.id == tenant_id).values(**changes)
            )
            await db.refresh(tenant)
            logger.info("Tenant updated by admin", tenant_id=tenant_id, changes=changes)
        return tenant, changes

    @staticmethod
    async def delete_tenant(db: AsyncSession, tenant_id: str) -> Tenant:
        """Delete a tenant; the database cascades to every tenant-owned row."""
        tenant = await TenantService.get_by_id_or_raise(db, tenant_id)
        await db.execute(delete(Tenant).where(Tenant.id == tenant_id))
        logger.info("Tenant deleted", tenant_id=tenant_id, slug=tenant.slug)
        return tenant

    @staticmethod
    async def platform_stats(db: AsyncSession, recent: int = 5) -> dict:
        total_tenants = (
            await db.execute(select(func.count()).select_from(Tenant))
        ).scalar_one()
        suspended = (
            await db.execute(
                select(func.count()).select_from(Tenant).where(Tenant.is_suspended.is_(True))
            )
        ).scalar_one()
        total_users = (await db.execute(select(func.count()).select_from(User))).scalar_one()

        plan_rows = await db.execute(
            select(Tenant.plan, func.count()).group_by(Tenant.plan)
        )
        distribution = {plan.value: 0 for plan in TenantPlan}
        for plan, count in plan_rows.all():
            distribution[plan] = count

        recent_rows = await db.execute(
            select(Tenant).order_by(Tenant.created_at.desc()).limit(recent)
        )
        recent_tenants = [
            {
                "id": t.id,
                "slug": t.slug,
                "name": t.name,
                "plan": t.plan,
                "created_at": t.created_at.isoformat(),
            }
            for t in recent_rows.scalars().all()
        ]

        return {
            "total_tenants": total_tenants,
            "active_tenants": total_tenants - suspended,
            "suspended_tenants": suspended,
            "total_users": total_users,
            "plan_distribution": distribution,
            "recent_tenants": recent_tenants,
        }
