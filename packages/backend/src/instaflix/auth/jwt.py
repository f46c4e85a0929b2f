"""Session token creation and verification.

Session tokens are HS256 JWTs carrying the principal id (sub), the issue
time (iat) and the expiry (exp). They are stateless: validity is decided by
signature and expiry alone, there is no server-side revocation list.
Rotating the signing key invalidates every token issued with the old one.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from instaflix.auth.errors import InvalidTokenError
from instaflix.config import Settings

TOKEN_TYPE = "session"
STATE_TYPE = "oauth_state"
STATE_LIFETIME = timedelta(minutes=10)


class SessionTokenService:
    """Issues and verifies signed bearer tokens.

    Built once at startup (see main.create_app) with the process-wide
    signing key, then shared read-only across requests.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expire_days: int = 30,
        leeway_seconds: int = 30,
    ):
        if not secret:
            raise ValueError("Session token secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.lifetime = timedelta(days=expire_days)
        self.leeway = timedelta(seconds=leeway_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionTokenService":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expire_days=settings.token_expire_days,
            leeway_seconds=settings.token_leeway_seconds,
        )

    @property
    def expires_in(self) -> int:
        """Token lifetime in seconds."""
        return int(self.lifetime.total_seconds())

    def issue(self, principal_id, issued_at: Optional[datetime] = None) -> str:
        """Create a session token for a principal."""
        issued_at = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": str(principal_id),
            "type": TOKEN_TYPE,
            "iat": issued_at,
            "exp": issued_at + self.lifetime,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """Verify a session token and return the principal id it carries.

        Raises InvalidTokenError on failure.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                leeway=self.leeway,
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        if payload.get("type") != TOKEN_TYPE:
            raise InvalidTokenError("Not a session token")
        return payload["sub"]

    def issue_state(self) -> str:
        """Create a short-lived OAuth state value for the provider redirect."""
        now = datetime.now(timezone.utc)
        payload = {
            "type": STATE_TYPE,
            "nonce": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + STATE_LIFETIME,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify_state(self, state: Optional[str]) -> None:
        """Check an OAuth state value came from us and is still fresh.

        Raises InvalidTokenError otherwise.
        """
        if not state:
            raise InvalidTokenError("Missing OAuth state")
        try:
            payload = jwt.decode(
                state,
                self._secret,
                algorithms=[self.algorithm],
                leeway=self.leeway,
                options={"require": ["exp"]},
            )
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid OAuth state: {e}")
        if payload.get("type") != STATE_TYPE:
            raise InvalidTokenError("Not an OAuth state")
