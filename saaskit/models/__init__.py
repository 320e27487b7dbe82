"""
models/__init__.py
------------------
Re-export all models so create_tables.py (or Alembic's env.py) can import
Base and discover all tables via a single import:

    from saaskit.models import Base
"""

from saaskit.db.base import Base
from saaskit.models.account import Account
from saaskit.models.admin import AdminRole, AdminSession, AdminSetupToken, SuperAdmin
from saaskit.models.audit_log import AuditAction, AuditLog, AuditTargetType
from saaskit.models.invitation import Invitation, InvitationStatus
from saaskit.models.password_reset import PasswordResetToken
from saaskit.models.tenant import Tenant, TenantPlan
from saaskit.models.todo import Todo
from saaskit.models.user import User, UserRole

__all__ = [
    "Base",
    "Account",
    "AdminRole",
    "AdminSession",
    "AdminSetupToken",
    "SuperAdmin",
    "AuditAction",
    "AuditLog",
    "AuditTargetType",
    "Invitation",
    "InvitationStatus",
    "PasswordResetToken",
    "Tenant",
    "TenantPlan",
    "Todo",
    "User",
    "UserRole",
]
