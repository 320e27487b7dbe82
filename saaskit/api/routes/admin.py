"""
api/routes/admin.py
-------------------
Platform admin panel. Every endpoint requires an admin session; admin
roster management additionally requires primary_admin. Each view or change
of a tenant, user or admin writes an audit entry.

GET    /admin/admins                          — primary_admin: roster
POST   /admin/admins                          — primary_admin: create admin
PATCH  /admin/admins/{id}                     — primary_admin: rename, role, (de)activate
DELETE /admin/admins/{id}                     — primary_admin: delete admin
GET    /admin/tenants                         — list tenants (+ user counts)
GET    /admin/tenants/{id}                    — tenant detail
PATCH  /admin/tenants/{id}                    — name / plan / suspension
DELETE /admin/tenants/{id}                    — delete tenant and all its data
GET    /admin/users                           — list users across tenants
GET    /admin/users/{id}                      — user detail
POST   /admin/users/{id}/reset-password       — send a reset link
GET    /admin/dashboard/stats                 — platform totals
GET    /admin/audit-logs                      — audit trail, newest first
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.config import settings
from saaskit.core.errors import NotFoundError
from saaskit.core.logging import get_logger
from saaskit.core.permissions import AdminAction
from saaskit.core.tenant_resolver import get_base_url, get_tenant_url
from saaskit.db.session import get_db
from saaskit.dependencies import require_admin_capability
from saaskit.models.admin import SuperAdmin
from saaskit.models.audit_log import AuditAction, AuditTargetType
from saaskit.models.tenant import Tenant
from saaskit.models.user import User
from saaskit.schemas.admin import (
    AdminCreate,
    AdminCreated,
    AdminRead,
    AdminUpdate,
    AdminUserListResponse,
    AdminUserRead,
    AuditLogListResponse,
    AuditLogRead,
    DashboardStats,
    PasswordResetLink,
)
from saaskit.schemas.tenant import AdminTenantListResponse, AdminTenantRead, AdminTenantUpdate
from saaskit.schemas.user import MessageResponse
from saaskit.services.admin_service import AdminService
from saaskit.services.admin_session_service import AdminContext, AdminSessionService
from saaskit.services.audit_service import AuditService
from saaskit.services.email_service import (
    EmailSender,
    admin_setup_email,
    get_email_sender,
    password_reset_email,
)
from saaskit.services.password_reset_service import PasswordResetService
from saaskit.services.tenant_service import TenantService
from saaskit.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

PrimaryAdmin = Annotated[AdminContext, Depends(require_admin_capability(AdminAction.admin_read))]
TenantManager = Annotated[AdminContext, Depends(require_admin_capability(AdminAction.tenant_manage))]
UserManager = Annotated[AdminContext, Depends(require_admin_capability(AdminAction.user_manage))]
AuditReader = Annotated[AdminContext, Depends(require_admin_capability(AdminAction.audit_read))]


def _admin_user_read(user: User, tenant: Tenant) -> AdminUserRead:
    return AdminUserRead(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        tenant_name=tenant.name,
        has_password=bool(user.password_hash),
        created_at=user.created_at,
    )


def _tenant_read(tenant: Tenant, user_count: int) -> AdminTenantRead:
    return AdminTenantRead(
        id=tenant.id,
        slug=tenant.slug,
        name=tenant.name,
        plan=tenant.plan,
        is_suspended=tenant.is_suspended,
        created_at=tenant.created_at,
        updated_at=tenant.updated_at,
        user_count=user_count,
    )


# ── Admin roster ─────────────────────────────────────────────────────────────

@router.get("/admins", response_model=list[AdminRead], summary="List platform admins")
async def list_admins(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: PrimaryAdmin,
) -> list[AdminRead]:
    return [AdminRead.model_validate(a) for a in await AdminService.list_all(db)]


@router.post(
    "/admins",
    response_model=AdminCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create a platform admin",
)
async def create_admin(
    body: AdminCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[AdminContext, Depends(require_admin_capability(AdminAction.admin_create))],
    sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> AdminCreated:
    """
    Without a password, the new admin gets a 48-hour setup link by email.
    Outside production the link is also returned in the response.
    """
    admin = await AdminService.create(db, body.email, body.name, body.role, body.password)

    setup_url: Optional[str] = None
    if admin.password_hash is None:
        setup = await AdminService.create_setup_token(db, admin.id)
        setup_url = f"{get_base_url()}/admin/setup?token={setup.token}"
        result = await sender.send(admin_setup_email(admin.email, admin.name, setup_url))
        if not result.success:
            logger.warning("Admin setup email not delivered", admin_id=admin.id, error=result.error)

    await AuditService.record(
        db,
        ctx.admin,
        AuditAction.admin_create,
        AuditTargetType.admin,
        admin.id,
        {"email": admin.email, "role": admin.role},
    )
    return AdminCreated(
        admin=AdminRead.model_validate(admin),
        setup_url=None if settings.is_production else setup_url,
    )


@router.patch("/admins/{admin_id}", response_model=AdminRead, summary="Update a platform admin")
async def update_admin(
    admin_id: str,
    body: AdminUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[AdminContext, Depends(require_admin_capability(AdminAction.admin_update))],
) -> AdminRead:
    """A deactivated admin is signed out everywhere."""
    admin, changes = await AdminService.update(
        db, ctx.admin, admin_id, name=body.name, role=body.role, is_active=body.is_active
    )
    if changes.get("is_active") is False:
        await AdminSessionService.delete_all_for_admin(db, admin_id)
    if changes:
        await AuditService.record(
            db,
            ctx.admin,
            AuditAction.admin_update,
            AuditTargetType.admin,
            admin_id,
            {"email": admin.email, "changes": changes},
        )
    return AdminRead.model_validate(admin)


@router.delete("/admins/{admin_id}", response_model=MessageResponse, summary="Delete a platform admin")
async def delete_admin(
    admin_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[AdminContext, Depends(require_admin_capability(AdminAction.admin_delete))],
) -> MessageResponse:
    target: SuperAdmin = await AdminService.delete(db, ctx.admin, admin_id)
    await AuditService.record(
        db,
        ctx.admin,
        AuditAction.admin_delete,
        AuditTargetType.admin,
        admin_id,
        {"email": target.email, "role": target.role},
    )
    return MessageResponse(message="Admin deleted")


# ── Tenants ──────────────────────────────────────────────────────────────────

@router.get("/tenants", response_model=AdminTenantListResponse, summary="List tenants")
async def list_tenants(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: TenantManager,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    search: Optional[str] = Query(default=None, max_length=100),
) -> AdminTenantListResponse:
    total, rows = await TenantService.list_tenants(db, skip=skip, limit=limit, search=search)
    return AdminTenantListResponse(
        total=total, items=[_tenant_read(tenant, count) for tenant, count in rows]
    )


@router.get("/tenants/{tenant_id}", response_model=AdminTenantRead, summary="Tenant detail")
async def get_tenant(
    tenant_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: TenantManager,
) -> AdminTenantRead:
    tenant = await TenantService.get_by_id_or_raise(db, tenant_id)
    user_count = await TenantService.count_users(db, tenant_id)
    await AuditService.record(
        db, ctx.admin, AuditAction.tenant_view, AuditTargetType.tenant, tenant_id
    )
    return _tenant_read(tenant, user_count)


@router.patch("/tenants/{tenant_id}", response_model=AdminTenantRead, summary="Update a tenant")
async def update_tenant(
    tenant_id: str,
    body: AdminTenantUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: TenantManager,
) -> AdminTenantRead:
    tenant, changes = await TenantService.update_tenant(db, tenant_id, body)

    if changes:
        if "is_suspended" in changes:
            action = (
                AuditAction.tenant_suspend
                if changes["is_suspended"]
                else AuditAction.tenant_unsuspend
            )
        else:
            action = AuditAction.tenant_update
        await AuditService.record(
            db,
            ctx.admin,
            action,
            AuditTargetType.tenant,
            tenant_id,
            {"slug": tenant.slug, "changes": changes},
        )

    user_count = await TenantService.count_users(db, tenant_id)
    return _tenant_read(tenant, user_count)


@router.delete("/tenants/{tenant_id}", response_model=MessageResponse, summary="Delete a tenant")
async def delete_tenant(
    tenant_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: TenantManager,
) -> MessageResponse:
    tenant = await TenantService.delete_tenant(db, tenant_id)
    await AuditService.record(
        db,
        ctx.admin,
        AuditAction.tenant_delete,
        AuditTargetType.tenant,
        tenant_id,
        {"slug": tenant.slug, "name": tenant.name},
    )
    return MessageResponse(message="Tenant deleted")


# ── Users ────────────────────────────────────────────────────────────────────

@router.get("/users", response_model=AdminUserListResponse, summary="List users")
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: UserManager,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    search: Optional[str] = Query(default=None, max_length=100),
    tenant_id: Optional[str] = None,
) -> AdminUserListResponse:
    total, rows = await UserService.list_all_users(
        db, skip=skip, limit=limit, search=search, tenant_id=tenant_id
    )
    return AdminUserListResponse(
        total=total, items=[_admin_user_read(user, tenant) for user, tenant in rows]
    )


@router.get("/users/{user_id}", response_model=AdminUserRead, summary="User detail")
async def get_user(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: UserManager,
) -> AdminUserRead:
    found = await UserService.get_with_tenant(db, user_id)
    if found is None:
        raise NotFoundError("User not found")
    user, tenant = found
    await AuditService.record(
        db,
        ctx.admin,
        AuditAction.user_view,
        AuditTargetType.user,
        user_id,
        {"tenant_id": tenant.id},
    )
    return _admin_user_read(user, tenant)


@router.post(
    "/users/{user_id}/reset-password",
    response_model=PasswordResetLink,
    summary="Send a user a password reset link",
)
async def reset_user_password(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: UserManager,
    sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> PasswordResetLink:
    found = await UserService.get_with_tenant(db, user_id)
    if found is None:
        raise NotFoundError("User not found")
    user, tenant = found

    raw_token = await PasswordResetService.create_token(db, user.id, tenant.id)
    reset_url = get_tenant_url(tenant.slug, f"/reset-password?token={raw_token}")
    result = await sender.send(password_reset_email(user.email, user.name, reset_url))

    await AuditService.record(
        db,
        ctx.admin,
        AuditAction.user_reset_password,
        AuditTargetType.user,
        user_id,
        {"tenant_id": tenant.id, "email_sent": result.success},
    )
    return PasswordResetLink(
        message="Password reset link created",
        email_sent=result.success,
        reset_url=None if settings.is_production else reset_url,
    )


# ── Dashboard & audit ────────────────────────────────────────────────────────

@router.get("/dashboard/stats", response_model=DashboardStats, summary="Platform totals")
async def dashboard_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: TenantManager,
) -> DashboardStats:
    return DashboardStats(**await TenantService.platform_stats(db))


@router.get("/audit-logs", response_model=AuditLogListResponse, summary="Audit trail")
async def list_audit_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: AuditReader,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    action: Optional[str] = None,
    admin_id: Optional[str] = None,
    target_id: Optional[str] = None,
) -> AuditLogListResponse:
    total, entries = await AuditService.list_entries(
        db, skip=skip, limit=limit, action=action, admin_id=admin_id, target_id=target_id
    )
    return AuditLogListResponse(
        total=total,
        items=[
            AuditLogRead(
                id=e.id,
                admin_id=e.admin_id,
                admin_email=e.admin_email,
                action=e.action,
                target_type=e.target_type,
                target_id=e.target_id,
                details=AuditService.parse_details(e),
                created_at=e.created_at,
            )
            for e in entries
        ],
    )
