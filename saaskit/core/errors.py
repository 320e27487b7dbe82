"""
core/errors.py
--------------
Typed error taxonomy.

Services raise these and never build HTTP responses themselves. main.py
registers exception handlers that map each class to its status code and a
safe message. Anything that is not a subclass of these ends up in the
generic 500 handler.
"""

from enum import Enum
from typing import Dict, List, Optional


class DALError(Exception):
    """Base class for errors raised by the data-access / service layer."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(DALError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(DALError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(DALError):
    status_code = 404
    default_message = "Resource not found"


class ValidationError(DALError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        field_errors: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        super().__init__(message)
        self.field_errors = field_errors or {}


class ConflictError(DALError):
    status_code = 409
    default_message = "Resource already exists"


class DatabaseError(DALError):
    status_code = 500
    default_message = "A database error occurred"


# ── Sign-in outcomes ──────────────────────────────────────────────────────────

class SignInFailure(str, Enum):
    invalid_credentials = "InvalidCredentials"
    tenant_suspended = "TenantSuspended"
    oauth_only_user = "OAuthOnlyUser"
    tenant_not_found = "TenantNotFound"
    account_linked_to_other_tenant = "AccountLinkedToOtherTenant"
    oauth_error = "OAuthError"
    invalid_state = "InvalidState"
    oauth_access_denied = "OAuthAccessDenied"


_SIGN_IN_MESSAGES = {
    SignInFailure.invalid_credentials: "Invalid email or password",
    SignInFailure.tenant_suspended: "This organization has been suspended",
    SignInFailure.oauth_only_user: "This account uses social sign-in",
    SignInFailure.tenant_not_found: "Organization not found",
    SignInFailure.account_linked_to_other_tenant: (
        "This account is already linked to another organization"
    ),
    SignInFailure.oauth_error: "Sign-in with the external provider failed",
    SignInFailure.invalid_state: "Sign-in session is invalid or has expired",
    SignInFailure.oauth_access_denied: "The provider did not share an email address",
}

_SIGN_IN_STATUS = {
    SignInFailure.tenant_suspended: 403,
    SignInFailure.tenant_not_found: 404,
    SignInFailure.account_linked_to_other_tenant: 403,
}


class SignInError(Exception):
    """A rejected credential or OAuth sign-in, carrying a machine-readable reason."""

    def __init__(self, reason: SignInFailure) -> None:
        self.reason = reason
        self.message = _SIGN_IN_MESSAGES[reason]
        self.status_code = _SIGN_IN_STATUS.get(reason, 401)
        super().__init__(self.message)


# ── Admin authority ───────────────────────────────────────────────────────────

class AccountLockedError(DALError):
    status_code = 423
    default_message = "Account is locked. Try again later."


class AccountDeactivatedError(DALError):
    status_code = 401
    default_message = "Account is deactivated"
