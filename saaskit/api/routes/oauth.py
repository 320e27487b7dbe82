"""
api/routes/oauth.py
-------------------
OAuth sign-in (Google).

GET /auth/oauth/{provider}/authorize  — On a tenant host: encode the tenant
                                        into a signed `state` and redirect to
                                        the provider.
GET /auth/oauth/{provider}/callback   — On the root domain (the one redirect
                                        URI registered with the provider):
                                        decode the state, fetch the profile,
                                        sign in, redirect back to the tenant.

The callback never raises to the browser. Every failure redirects to the
tenant's /login page with ?error=<SignInFailure>.
"""

from typing import Annotated, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.api.routes.auth import set_session_cookie
from saaskit.core.config import settings
from saaskit.core.errors import SignInError, SignInFailure
from saaskit.core.logging import get_logger
from saaskit.core.oauth_state import decode_state, encode_state
from saaskit.core.tenant_resolver import get_base_url, get_tenant_url, strip_port
from saaskit.db.session import get_db
from saaskit.dependencies import get_request_tenant
from saaskit.models.tenant import Tenant
from saaskit.services.auth_service import AuthService
from saaskit.services.oauth_provider import (
    GoogleOAuthClient,
    OAuthProviderError,
    get_oauth_client,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/auth/oauth", tags=["OAuth"])

SUPPORTED_PROVIDERS = {"google"}


def _redirect_uri(provider: str) -> str:
    return f"{get_base_url()}/auth/oauth/{provider}/callback"


def _login_error_redirect(tenant_slug: Optional[str], reason: SignInFailure) -> RedirectResponse:
    url = get_tenant_url(tenant_slug, "/login") if tenant_slug else f"{get_base_url()}/login"
    separator = "&" if "?" in url else "?"
    return RedirectResponse(
        f"{url}{separator}error={reason.value}", status_code=status.HTTP_302_FOUND
    )


def _safe_callback(tenant_slug: str, callback_url: Optional[str]) -> str:
    """Only follow callbacks that stay on our own domain."""
    default = get_tenant_url(tenant_slug, "/dashboard")
    if not callback_url:
        return default
    if callback_url.startswith("/") and not callback_url.startswith("//"):
        return get_tenant_url(tenant_slug, callback_url)
    host = (urlparse(callback_url).hostname or "").lower()
    root = strip_port(settings.ROOT_DOMAIN)
    if host == root or host.endswith(f".{root}"):
        return callback_url
    return default


def _check_provider(provider: str, client: GoogleOAuthClient) -> None:
    if provider not in SUPPORTED_PROVIDERS or provider != client.provider:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown provider")


@router.get("/{provider}/authorize", summary="Start OAuth sign-in for the current tenant")
async def authorize(
    provider: str,
    tenant: Annotated[Tenant, Depends(get_request_tenant)],
    client: Annotated[GoogleOAuthClient, Depends(get_oauth_client)],
    callback_url: Optional[str] = Query(default=None, max_length=2048),
) -> RedirectResponse:
    _check_provider(provider, client)
    if not client.configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="OAuth provider is not configured",
        )
    if tenant.is_suspended:
        return _login_error_redirect(tenant.slug, SignInFailure.tenant_suspended)

    state = encode_state(
        tenant.slug, _safe_callback(tenant.slug, callback_url) if callback_url else None
    )
    return RedirectResponse(
        client.authorization_url(state, _redirect_uri(provider)),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/{provider}/callback", summary="OAuth provider redirect target")
async def callback(
    provider: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    client: Annotated[GoogleOAuthClient, Depends(get_oauth_client)],
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
) -> RedirectResponse:
    _check_provider(provider, client)

    decoded = decode_state(state)
    if not decoded.success:
        logger.warning("OAuth state rejected", provider=provider, reason=decoded.error)
        return _login_error_redirect(None, SignInFailure.invalid_state)
    tenant_slug = decoded.data.tenantSlug

    if error:
        reason = (
            SignInFailure.oauth_access_denied
            if error == "access_denied"
            else SignInFailure.oauth_error
        )
        return _login_error_redirect(tenant_slug, reason)
    if not code:
        return _login_error_redirect(tenant_slug, SignInFailure.oauth_error)

    try:
        profile = await client.fetch_profile(code, _redirect_uri(provider))
        identity = await AuthService.authorize_oauth(
            db,
            provider=provider,
            provider_account_id=profile.provider_account_id,
            profile_email=profile.email,
            tenant_slug=tenant_slug,
            profile_name=profile.name,
            tokens=profile.tokens,
        )
    except SignInError as exc:
        await db.rollback()
        logger.info("OAuth sign-in rejected", provider=provider, reason=exc.reason.value)
        return _login_error_redirect(tenant_slug, exc.reason)
    except OAuthProviderError:
        await db.rollback()
        return _login_error_redirect(tenant_slug, SignInFailure.oauth_error)
    except Exception:
        await db.rollback()
        logger.error("OAuth callback failed", provider=provider, exc_info=True)
        return _login_error_redirect(tenant_slug, SignInFailure.oauth_error)

    token, expires_in = AuthService.issue_session_token(identity)
    response = RedirectResponse(
        _safe_callback(identity.tenant_slug, decoded.data.callbackUrl),
        status_code=status.HTTP_302_FOUND,
    )
    set_session_cookie(response, token, expires_in)
    return response
