"""
schemas/admin.py
----------------
Bodies for the platform admin panel (/admin/...).
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from saaskit.models.admin import AdminRole
from saaskit.schemas.common import (
    PasswordConfirmation,
    StrongPassword,
    check_password_strength,
)


class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AdminRead(BaseModel):
    id: str
    email: str
    name: str
    role: str
    is_active: bool
    last_login_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    role: AdminRole = AdminRole.admin
    # Omit to send the new admin a setup link instead
    password: Optional[str] = Field(
        default=None, min_length=8, max_length=100
    )

    @field_validator("password")
    @classmethod
    def strong(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_password_strength(v)


class AdminUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    role: Optional[AdminRole] = None
    is_active: Optional[bool] = None


class AdminCreated(BaseModel):
    admin: AdminRead
    setup_url: Optional[str] = None


class SetupTokenInfo(BaseModel):
    valid: bool
    email: Optional[str] = None
    name: Optional[str] = None


class AdminSetupRequest(PasswordConfirmation):
    token: str = Field(..., min_length=1)
    password: StrongPassword
    confirm_password: str


class AdminUserRead(BaseModel):
    id: str
    email: str
    name: str
    role: str
    tenant_id: str
    tenant_slug: str
    tenant_name: str
    has_password: bool
    created_at: datetime


class AdminUserListResponse(BaseModel):
    total: int
    items: list[AdminUserRead]


class PasswordResetLink(BaseModel):
    message: str
    email_sent: bool
    reset_url: Optional[str] = None


class AuditLogRead(BaseModel):
    id: str
    admin_id: Optional[str]
    admin_email: str
    action: str
    target_type: Optional[str]
    target_id: Optional[str]
    details: Optional[dict[str, Any]]
    created_at: datetime


class AuditLogListResponse(BaseModel):
    total: int
    items: list[AuditLogRead]


class DashboardStats(BaseModel):
    total_tenants: int
    active_tenants: int
    suspended_tenants: int
    total_users: int
    plan_distribution: dict[str, int]
    recent_tenants: list[dict[str, Any]]
