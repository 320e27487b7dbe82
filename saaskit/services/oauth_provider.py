"""
services/oauth_provider.py
--------------------------
External OAuth provider client (Google, authorization-code flow).

Only three calls are needed: build the consent URL, exchange the code for
tokens, and fetch the user's profile. All network errors surface as
OAuthProviderError; the callback route turns that into the OAuthError
sign-in outcome.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from saaskit.core.config import settings
from saaskit.core.logging import get_logger

logger = get_logger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class OAuthProviderError(Exception):
    pass


@dataclass
class OAuthProfile:
    provider_account_id: str
    email: Optional[str]
    name: Optional[str]
    tokens: dict[str, Any]


class GoogleOAuthClient:
    provider = "google"

    def __init__(self, client_id: str, client_secret: str, timeout: float = 10.0) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str, redirect_uri: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "access_type": "offline",
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    async def fetch_profile(self, code: str, redirect_uri: str) -> OAuthProfile:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                token_response.raise_for_status()
                tokens = token_response.json()

                profile_response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {tokens['access_token']}"},
                )
                profile_response.raise_for_status()
                profile = profile_response.json()
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error("OAuth provider request failed", provider=self.provider, error=str(exc))
            raise OAuthProviderError(str(exc)) from exc

        if not profile.get("sub"):
            raise OAuthProviderError("Provider profile has no subject")

        expires_in = tokens.get("expires_in")
        return OAuthProfile(
            provider_account_id=str(profile["sub"]),
            email=profile.get("email") if profile.get("email_verified", True) else None,
            name=profile.get("name"),
            tokens={
                "access_token": tokens.get("access_token"),
                "refresh_token": tokens.get("refresh_token"),
                "expires_at": int(time.time()) + int(expires_in) if expires_in else None,
                "token_type": tokens.get("token_type"),
                "scope": tokens.get("scope"),
                "id_token": tokens.get("id_token"),
            },
        )


def get_oauth_client() -> GoogleOAuthClient:
    """FastAPI dependency; tests override it with a fake provider."""
    return GoogleOAuthClient(settings.GOOGLE_CLIENT_ID, settings.GOOGLE_CLIENT_SECRET)
