"""
models/tenant.py
----------------
Tenant (organisation) ORM model.

Each tenant is an isolated organisational unit reached through its slug
(acme.example.com). All data belonging to a tenant is scoped by tenant_id at
the query level; every tenant-owned table references tenants.id with
ON DELETE CASCADE so deleting a tenant removes everything it owns.
"""

from enum import Enum as PyEnum

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from saaskit.db.base import Base, TimestampMixin, generate_uuid


class TenantPlan(str, PyEnum):
    free = "free"
    pro = "pro"
    enterprise = "enterprise"


class Tenant(Base, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    # Immutable once created; the only thing a request is resolved by.
    slug: Mapped[str] = mapped_column(String(63), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    plan: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TenantPlan.free.value
    )
    is_suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    users: Mapped[list["User"]] = relationship(  # noqa: F821
        "User", back_populates="tenant", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} slug={self.slug}>"
