"""
models/user.py
--------------
Tenant-scoped user identity.

The same email may exist in several tenants; those are different users.
(email, tenant_id) is unique. password_hash is NULL for users who only
ever signed in through an OAuth provider.

Roles:
  - 'owner':  created the tenant; manages settings and can invite admins.
  - 'admin':  can invite members and revoke invitations.
  - 'member': works with todos.
"""

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from saaskit.db.base import Base, TimestampMixin, generate_uuid


class UserRole(str, PyEnum):
    owner = "owner"
    admin = "admin"
    member = "member"


class User(Base, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", "tenant_id", name="uq_users_email_tenant"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.member.value
    )
    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Relationships
    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="users")  # noqa: F821

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"
