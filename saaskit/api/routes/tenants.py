"""
api/routes/tenants.py
---------------------
Tenant self-service endpoints.

GET   /tenants/check-slug  — Public: is a slug free and well-formed?
GET   /tenant              — The current tenant
PATCH /tenant              — Owner: rename the tenant (slug is immutable)
GET   /team/members        — Users of the current tenant
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.permissions import Action
from saaskit.db.session import get_db
from saaskit.dependencies import CurrentUser, require_capability
from saaskit.schemas.common import slug_problems
from saaskit.schemas.invitation import TeamMemberRead
from saaskit.schemas.tenant import SlugAvailability, TenantRead, TenantSettingsUpdate
from saaskit.services.invitation_service import InvitationService
from saaskit.services.tenant_service import TenantService

router = APIRouter(tags=["Tenants"])


@router.get(
    "/tenants/check-slug",
    response_model=SlugAvailability,
    summary="Check whether a tenant slug can be registered",
)
async def check_slug(
    db: Annotated[AsyncSession, Depends(get_db)],
    slug: str = Query(..., max_length=100),
) -> SlugAvailability:
    slug = slug.strip().lower()
    problems = slug_problems(slug)
    available = not problems and await TenantService.is_slug_available(db, slug)
    return SlugAvailability(slug=slug, available=available, errors=problems)


@router.get("/tenant", response_model=TenantRead, summary="Current tenant")
async def get_tenant(
    current: Annotated[CurrentUser, Depends(require_capability(Action.tenant_read))],
) -> TenantRead:
    return TenantRead.model_validate(current.tenant)


@router.patch("/tenant", response_model=TenantRead, summary="Update tenant settings (owner)")
async def update_tenant(
    body: TenantSettingsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: Annotated[CurrentUser, Depends(require_capability(Action.tenant_update))],
) -> TenantRead:
    tenant = await TenantService.update_settings(db, current.ctx, body.name)
    return TenantRead.model_validate(tenant)


@router.get(
    "/team/members",
    response_model=list[TeamMemberRead],
    summary="List members of the current tenant",
)
async def list_team_members(
    db: Annotated[AsyncSession, Depends(get_db)],
    current: Annotated[CurrentUser, Depends(require_capability(Action.team_read))],
) -> list[TeamMemberRead]:
    users = await InvitationService.list_team_members(db, current.ctx)
    return [TeamMemberRead.model_validate(u) for u in users]
