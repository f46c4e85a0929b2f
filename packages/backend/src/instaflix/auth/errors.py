"""Identity error taxonomy.

Services raise these; the API layer maps them to HTTP responses via the
exception handler registered in main.py. None are retried automatically,
except ConflictError inside federated account creation.
"""

from typing import Optional


class IdentityError(Exception):
    """Base class for identity failures that terminate a request."""

    status_code = 400
    default_detail = "Identity error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ConflictError(IdentityError):
    """A uniqueness invariant would be violated (email, username, provider id)."""

    status_code = 409
    default_detail = "Already exists"

    def __init__(self, detail: Optional[str] = None, field: Optional[str] = None):
        super().__init__(detail)
        self.field = field


class InvalidCredentialsError(IdentityError):
    """Email/password pair rejected. Same message whatever the cause."""

    status_code = 401
    default_detail = "Invalid credentials"


class InvalidTokenError(IdentityError):
    """Session token is malformed, forged, or expired."""

    status_code = 401
    default_detail = "Invalid token"


class UnauthenticatedError(IdentityError):
    """No usable credentials on a request that requires them."""

    status_code = 401
    default_detail = "Authentication required"


class ProviderError(IdentityError):
    """The external identity provider handshake failed."""

    status_code = 400
    default_detail = "External identity provider error"
