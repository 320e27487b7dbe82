"""
core/security.py
----------------
Password hashing, JWT session tokens and opaque random tokens.

Design decisions:
  - bcrypt work factor from settings (12 in every real environment).
  - The session JWT carries sub (user_id), tenant_id, tenant_slug, role,
    email and name. Role and tenant are baked in at issuance; a role change
    only takes effect once a new token is issued.
  - Opaque tokens (invitations, password reset, admin sessions, setup links)
    come from the secrets module. Password reset tokens are stored hashed.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from passlib.context import CryptContext

from saaskit.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


# ── Password Utilities ────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the plain-text password."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    """Constant-time comparison of plain password against stored hash."""
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


# ── JWT Utilities ─────────────────────────────────────────────────────────────

def create_access_token(
    subject: str,
    tenant_id: str,
    tenant_slug: str,
    role: str,
    email: str = "",
    name: str = "",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Mint a session JWT.

    Args:
        subject: User UUID (stored in 'sub' claim).
        tenant_id: Tenant UUID the identity belongs to.
        tenant_slug: Slug of that tenant, compared against the resolved
            request tenant on every call.
        role: 'owner' | 'admin' | 'member'
        expires_delta: Optional custom expiry; defaults to settings value.

    Returns:
        Signed JWT string.
    """
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: Dict[str, Any] = {
        "sub": subject,
        "tenant_id": tenant_id,
        "tenant_slug": tenant_slug,
        "role": role,
        "email": email,
        "name": name,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a session JWT.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


# ── Opaque Tokens ─────────────────────────────────────────────────────────────

def generate_token(nbytes: int = 32) -> str:
    """Hex-encoded random token (64 chars for the default 32 bytes)."""
    return secrets.token_hex(nbytes)


def generate_url_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """SHA-256 of a raw token; only the digest is persisted."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
