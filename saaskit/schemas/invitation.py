"""
schemas/invitation.py
---------------------
Invitation bodies. The invitation token is only ever returned to the
inviter outside production, and only when the email could not be sent.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from saaskit.schemas.common import PasswordConfirmation, StrongPassword


class InvitationCreate(BaseModel):
    email: EmailStr
    role: Literal["admin", "member"] = "member"


class InvitationRead(BaseModel):
    id: str
    email: str
    role: str
    status: str
    tenant_id: str
    invited_by_id: Optional[str]
    expires_at: datetime
    accepted_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationCreated(BaseModel):
    invitation: InvitationRead
    email_sent: bool
    dev_token: Optional[str] = None
    dev_invite_url: Optional[str] = None


class InvitationAccept(PasswordConfirmation):
    token: str = Field(..., min_length=1)
    name: str = Field(..., min_length=2, max_length=100)
    password: StrongPassword
    confirm_password: str


class InvitationAccepted(BaseModel):
    user_id: str
    email: str
    tenant_slug: str
    login_url: str


class TeamMemberRead(BaseModel):
    id: str
    email: str
    name: str
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationTokenInfo(BaseModel):
    email: str
    role: str
    status: str
    tenant_name: str
    tenant_slug: str
    expired: bool
