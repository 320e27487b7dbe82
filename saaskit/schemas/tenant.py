"""
schemas/tenant.py
-----------------
Pydantic request/response models for Tenant.

Naming convention:
  TenantCreate  → inbound request body
  TenantRead    → outbound response body (never exposes internal fields)
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from saaskit.models.tenant import TenantPlan
from saaskit.schemas.common import SLUG_MAX_LENGTH, SLUG_MIN_LENGTH, check_slug


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100, examples=["Acme Corp"])
    slug: str = Field(
        ...,
        min_length=SLUG_MIN_LENGTH,
        max_length=SLUG_MAX_LENGTH,
        examples=["acme"],
        description="Subdomain the tenant is reached on",
    )
    plan: TenantPlan = TenantPlan.free

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("slug")
    @classmethod
    def valid_slug(cls, v: str) -> str:
        return check_slug(v)


class TenantRead(BaseModel):
    id: str
    slug: str
    name: str
    plan: str
    is_suspended: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TenantSettingsUpdate(BaseModel):
    """Self-service settings; the slug is immutable."""
    name: str = Field(..., min_length=2, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class SlugAvailability(BaseModel):
    slug: str
    available: bool
    errors: list[str] = []


# ── Platform admin views ─────────────────────────────────────────────────────

class AdminTenantUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    plan: Optional[TenantPlan] = None
    is_suspended: Optional[bool] = None


class AdminTenantRead(TenantRead):
    user_count: int = 0
    updated_at: datetime


class AdminTenantListResponse(BaseModel):
    total: int
    items: list[AdminTenantRead]
