"""
schemas/user.py
---------------
Pydantic models for signup, login, password flows and user responses.

Security note:
  - password_hash is NEVER included in any response schema.
  - Passwords need 8-100 chars with upper, lower and a digit.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from saaskit.schemas.common import (
    SLUG_MAX_LENGTH,
    SLUG_MIN_LENGTH,
    PasswordConfirmation,
    StrongPassword,
    check_slug,
)


class SignupRequest(PasswordConfirmation):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: StrongPassword
    confirm_password: str
    tenant_name: str = Field(..., min_length=2, max_length=100)
    tenant_slug: str = Field(
        ..., min_length=SLUG_MIN_LENGTH, max_length=SLUG_MAX_LENGTH
    )

    @field_validator("tenant_slug")
    @classmethod
    def valid_slug(cls, v: str) -> str:
        return check_slug(v.strip().lower())

    @field_validator("name", "tenant_name")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    # Optional when the request host already identifies the tenant
    tenant_slug: Optional[str] = None


class UserRead(BaseModel):
    id: str
    email: str
    name: str
    role: str
    tenant_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class MeResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    tenant_id: str
    tenant_slug: str
    has_password: bool


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    tenant_slug: str
    user: UserRead


class SignupResponse(BaseModel):
    user: UserRead
    tenant_slug: str
    tenant_url: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr
    tenant_slug: Optional[str] = None


class ForgotPasswordResponse(BaseModel):
    message: str
    # Only populated outside production
    dev_token: Optional[str] = None


class ResetPasswordRequest(PasswordConfirmation):
    token: str = Field(..., min_length=1)
    password: StrongPassword
    confirm_password: str


class ChangePasswordRequest(PasswordConfirmation):
    current_password: str = Field(..., min_length=1)
    password: StrongPassword
    confirm_password: str


class ProfileUpdate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)

    @field_validator("name")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class MessageResponse(BaseModel):
    message: str
