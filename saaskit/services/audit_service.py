"""
services/audit_service.py
-------------------------
Append-only audit trail for platform admin actions.

Each entry is written inside a SAVEPOINT. If the insert fails the
savepoint is rolled back, the failure is logged, and the admin action that
triggered it carries on: availability wins over audit completeness.
"""

import json
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.logging import get_logger
from saaskit.models.admin import SuperAdmin
from saaskit.models.audit_log import AuditAction, AuditLog, AuditTargetType

logger = get_logger(__name__)


class AuditService:

    @staticmethod
    async def record(
        db: AsyncSession,
        admin: SuperAdmin,
        action: AuditAction,
        target_type: Optional[AuditTargetType] = None,
        target_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Returns False when the entry could not be written."""
        entry = AuditLog(
            admin_id=admin.id,
            admin_email=admin.email,
            action=action.value,
            target_type=target_type.value if target_type else None,
            target_id=target_id,
            details=json.dumps(details, default=str) if details is not None else None,
        )
        try:
            async with db.begin_nested():
                db.add(entry)
        except SQLAlchemyError as exc:
            logger.error(
                "Audit log write failed",
                action=action.value,
                admin_id=admin.id,
                target_id=target_id,
                error=str(exc),
            )
            return False
        return True

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        skip: int = 0,
        limit: int = 50,
        action: Optional[str] = None,
        admin_id: Optional[str] = None,
        target_id: Optional[str] = None,
    ) -> tuple[int, list[AuditLog]]:
        filters = []
        if action:
            filters.append(AuditLog.action == action)
        if admin_id:
            filters.append(AuditLog.admin_id == admin_id)
        if target_id:
            filters.append(AuditLog.target_id == target_id)

        total = (
            await db.execute(select(func.count()).select_from(AuditLog).where(*filters))
        ).scalar_one()
        result = await db.execute(
            select(AuditLog)
            .where(*filters)
            .order_by(AuditLog.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return total, list(result.scalars().all())

    @staticmethod
    def parse_details(entry: AuditLog) -> Optional[dict[str, Any]]:
        if not entry.details:
            return None
        try:
            value = json.loads(entry.details)
        except json.JSONDecodeError:
            return {"raw": entry.details}
        return value if isinstance(value, dict) else {"value": value}
