"""
services/auth_service.py
------------------------
SessionAuthority: credential sign-in, OAuth sign-in and token issuance.

Every rejection is a SignInError carrying a SignInFailure reason. Reasons
are deliberately coarse where detail would help enumeration (unknown
tenant, unknown email and wrong password all read "invalid credentials")
and specific where the detail tells a legitimate user how to recover
(suspended tenant, OAuth-only account).

The session token bakes in role and tenant at issuance. Changes to either
apply when the next token is issued; deletion and suspension are picked up
on the next request because dependencies.get_current_user re-reads the
user and tenant every time.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.config import settings
from saaskit.core.errors import SignInError, SignInFailure
from saaskit.core.logging import get_logger
from saaskit.core.security import create_access_token, hash_password, pwd_context, verify_password
from saaskit.models.tenant import Tenant
from saaskit.models.user import User, UserRole
from saaskit.schemas.tenant import TenantCreate
from saaskit.schemas.user import SignupRequest
from saaskit.services.account_service import AccountService
from saaskit.services.tenant_service import TenantService
from saaskit.services.user_service import UserService

logger = get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    tenant_id: str
    tenant_slug: str
    role: str
    email: str
    name: str

    @classmethod
    def of(cls, user: User, tenant: Tenant) -> "Identity":
        return cls(
            user_id=user.id,
            tenant_id=tenant.id,
            tenant_slug=tenant.slug,
            role=user.role,
            email=user.email,
            name=user.name,
        )


class AuthService:

    @staticmethod
    async def authorize(
        db: AsyncSession, email: str, password: str, tenant_slug: Optional[str]
    ) -> Identity:
        """Credential sign-in scoped to one tenant."""
        tenant = await TenantService.get_by_slug(db, tenant_slug)
        if tenant is None:
            pwd_context.dummy_verify()
            logger.info("Login rejected", reason="unknown_tenant", tenant_slug=tenant_slug)
            raise SignInError(SignInFailure.invalid_credentials)

        if tenant.is_suspended:
            logger.info("Login rejected", reason="tenant_suspended", tenant_id=tenant.id)
            raise SignInError(SignInFailure.tenant_suspended)

        user = await UserService.get_by_email(db, email, tenant.id)
        if user is None:
            pwd_context.dummy_verify()
            logger.info("Login rejected", reason="unknown_user", tenant_id=tenant.id)
            raise SignInError(SignInFailure.invalid_credentials)

        if not user.password_hash:
            raise SignInError(SignInFailure.oauth_only_user)

        if not verify_password(password, user.password_hash):
            logger.info("Login rejected", reason="bad_password", user_id=user.id)
            raise SignInError(SignInFailure.invalid_credentials)

        logger.info("User signed in", user_id=user.id, tenant_id=tenant.id)
        return Identity.of(user, tenant)

    @staticmethod
    async def authorize_oauth(
        db: AsyncSession,
        provider: str,
        provider_account_id: str,
        profile_email: Optional[str],
        tenant_slug: Optional[str],
        profile_name: Optional[str] = None,
        tokens: Optional[dict[str, Any]] = None,
    ) -> Identity:
        """
        OAuth sign-in. `tenant_slug` must come from the decoded state the
        flow started with, never from the provider's response.

        An external identity stays bound to the tenant it first joined;
        presenting it under another tenant is rejected, not re-linked.
        """
        if not profile_email:
            raise SignInError(SignInFailure.oauth_access_denied)
        if not tenant_slug:
            raise SignInError(SignInFailure.invalid_state)
        if not provider_account_id:
            raise SignInError(SignInFailure.oauth_error)

        tenant = await TenantService.get_by_slug(db, tenant_slug)
        if tenant is None:
            raise SignInError(SignInFailure.tenant_not_found)
        if tenant.is_suspended:
            raise SignInError(SignInFailure.tenant_suspended)

        link = await AccountService.get_by_provider_account(db, provider, provider_account_id)
        if link is not None:
            user = await UserService.get_by_id(db, link.user_id, tenant.id)
            if user is None:
                logger.warning(
                    "OAuth identity bound to another tenant",
                    provider=provider,
                    tenant_id=tenant.id,
                )
                raise SignInError(SignInFailure.account_linked_to_other_tenant)
            return Identity.of(user, tenant)

        try:
            user = await UserService.get_by_email(db, profile_email, tenant.id)
            if user is None:
                name = (profile_name or "").strip() or profile_email.split("@", 1)[0]
                user = await UserService.create_user(
                    db,
                    tenant_id=tenant.id,
                    email=profile_email,
                    name=name[:100],
                    role=UserRole.member,
                )
            await AccountService.link_account(
                db, user.id, provider, provider_account_id, tokens
            )
        except IntegrityError:
            # A concurrent callback linked the same identity first
            logger.warning("OAuth link race lost", provider=provider, tenant_id=tenant.id)
            raise SignInError(SignInFailure.oauth_error)

        logger.info("User signed in via OAuth", user_id=user.id, provider=provider)
        return Identity.of(user, tenant)

    @staticmethod
    def issue_session_token(identity: Identity) -> tuple[str, int]:
        """Returns (jwt, lifetime in seconds)."""
        expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        token = create_access_token(
            subject=identity.user_id,
            tenant_id=identity.tenant_id,
            tenant_slug=identity.tenant_slug,
            role=identity.role,
            email=identity.email,
            name=identity.name,
            expires_delta=expires,
        )
        return token, int(expires.total_seconds())

    @staticmethod
    async def signup(db: AsyncSession, data: SignupRequest) -> Identity:
        """
        Create a tenant and its owner in one transaction. The request's
        get_db session commits both or neither.
        """
        tenant = await TenantService.create_tenant(
            db, TenantCreate(name=data.tenant_name, slug=data.tenant_slug)
        )
        user = await UserService.create_user(
            db,
            tenant_id=tenant.id,
            email=data.email,
            name=data.name,
            role=UserRole.owner,
            password_hash=hash_password(data.password),
        )
        logger.info("Signup completed", tenant_id=tenant.id, user_id=user.id)
        return Identity.of(user, tenant)
