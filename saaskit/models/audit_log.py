"""
models/audit_log.py
-------------------
Append-only record of platform admin actions.

admin_email is copied onto the row so entries stay readable after the admin
account is deleted (admin_id is then set to NULL).
"""

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from saaskit.db.base import Base, CreatedAtMixin, generate_uuid


class AuditAction(str, PyEnum):
    admin_login = "admin.login"
    admin_logout = "admin.logout"
    admin_create = "admin.create"
    admin_update = "admin.update"
    admin_delete = "admin.delete"
    admin_setup = "admin.setup"
    tenant_view = "tenant.view"
    tenant_update = "tenant.update"
    tenant_suspend = "tenant.suspend"
    tenant_unsuspend = "tenant.unsuspend"
    tenant_delete = "tenant.delete"
    user_view = "user.view"
    user_reset_password = "user.reset_password"


class AuditTargetType(str, PyEnum):
    tenant = "tenant"
    user = "user"
    admin = "admin"


class AuditLog(Base, CreatedAtMixin):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    admin_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("super_admins.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    admin_email: Mapped[str] = mapped_column(String(320), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    target_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    target_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # JSON-encoded object
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
