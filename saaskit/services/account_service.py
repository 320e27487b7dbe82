"""
services/account_service.py
---------------------------
OAuth account links. A link is created once and never moved to another
user; see AuthService.authorize_oauth for how conflicts are rejected.
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.logging import get_logger
from saaskit.models.account import Account

logger = get_logger(__name__)

_TOKEN_FIELDS = ("refresh_token", "access_token", "expires_at", "token_type", "scope", "id_token")


class AccountService:

    @staticmethod
    async def get_by_provider_account(
        db: AsyncSession, provider: str, provider_account_id: str
    ) -> Account | None:
        result = await db.execute(
            select(Account).where(
                Account.provider == provider,
                Account.provider_account_id == provider_account_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def link_account(
        db: AsyncSession,
        user_id: str,
        provider: str,
        provider_account_id: str,
        tokens: Optional[dict[str, Any]] = None,
    ) -> Account:
        tokens = tokens or {}
        account = Account(
            user_id=user_id,
            type="oauth",
            provider=provider,
            provider_account_id=provider_account_id,
            **{field: tokens.get(field) for field in _TOKEN_FIELDS},
        )
        db.add(account)
        await db.flush()
        logger.info("OAuth account linked", user_id=user_id, provider=provider)
        return account
