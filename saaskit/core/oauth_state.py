"""
core/oauth_state.py
-------------------
OAuth `state` parameter codec.

The state carries the tenant slug across the round-trip to the external
provider, so the callback never has to trust anything the provider sends
back about which tenant the user is signing into.

Wire format:  <payload>.<signature>
  payload   = unpadded base64url(JSON {"tenantSlug", "callbackUrl"?, "timestamp"})
  signature = unpadded base64url(HMAC-SHA256(SECRET_KEY, payload))
  timestamp = milliseconds since the epoch; states older than 10 minutes
              are rejected.

decode_state() never raises: every failure comes back as a result with a
human-readable reason.
"""

import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Optional

from pydantic import AnyUrl, BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from saaskit.core.config import settings

STATE_MAX_AGE_MS = 10 * 60 * 1000

_url_adapter = TypeAdapter(AnyUrl)


class OAuthStateData(BaseModel):
    tenantSlug: str = Field(min_length=1)
    callbackUrl: Optional[str] = None
    timestamp: int = Field(gt=0, strict=True)

    @field_validator("callbackUrl")
    @classmethod
    def must_be_url(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            _url_adapter.validate_python(v)
        return v


@dataclass
class DecodeStateResult:
    success: bool
    data: Optional[OAuthStateData] = None
    error: Optional[str] = None


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.b64decode(padded, altchars=b"-_", validate=True)


def _sign(payload: str) -> str:
    digest = hmac.new(
        settings.SECRET_KEY.encode("utf-8"),
        payload.encode("ascii"),
        hashlib.sha256,
    ).digest()
    return _b64encode(digest)


def _now_ms() -> int:
    return int(time.time() * 1000)


def encode_state(
    tenant_slug: str,
    callback_url: Optional[str] = None,
    now_ms: Optional[int] = None,
) -> str:
    body = {"tenantSlug": tenant_slug, "timestamp": now_ms or _now_ms()}
    if callback_url:
        body["callbackUrl"] = callback_url
    payload = _b64encode(json.dumps(body, separators=(",", ":")).encode("utf-8"))
    return f"{payload}.{_sign(payload)}"


def _fail(error: str) -> DecodeStateResult:
    return DecodeStateResult(success=False, error=error)


def decode_state(state: Optional[str], now_ms: Optional[int] = None) -> DecodeStateResult:
    if state is None:
        return _fail("State parameter is missing")
    if not state.strip():
        return _fail("State parameter is empty")

    payload, _, signature = state.partition(".")
    try:
        raw = _b64decode(payload)
        _b64decode(signature)
    except (binascii.Error, ValueError):
        return _fail("State parameter is not valid base64")

    if not signature or not hmac.compare_digest(signature, _sign(payload)):
        return _fail("State parameter signature is invalid")

    try:
        body = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return _fail("State parameter is not valid JSON")

    try:
        data = OAuthStateData.model_validate(body)
    except PydanticValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'state'}: {err['msg']}"
            for err in exc.errors()
        )
        return _fail(f"Invalid state structure: {details}")

    if (now_ms or _now_ms()) - data.timestamp > STATE_MAX_AGE_MS:
        return _fail("State parameter has expired")

    return DecodeStateResult(success=True, data=data)
