"""FastAPI auth dependencies.

These are used as Depends() in route handlers to extract and verify the
bearer token and attach the caller to the request.

Two variants share the same extraction and verification:
1. get_current_principal: required, 401 on a missing or bad token
2. get_current_principal_optional: a missing or bad token yields None

Neither touches the database. The token alone carries identity, which
trades instant revocation for a lookup-free request path.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from instaflix.auth.errors import InvalidTokenError, UnauthenticatedError
from instaflix.auth.jwt import SessionTokenService


class CurrentPrincipal:
    """The authenticated caller, as known from the token.

    Downstream code scopes its queries by id.
    """

    def __init__(self, id: str, email: Optional[str] = None):
        self.id = id
        self.email = email

    def __repr__(self) -> str:
        return f"CurrentPrincipal(id={self.id!r})"


def get_token_service(request: Request) -> SessionTokenService:
    """The process-wide token service built in create_app()."""
    return request.app.state.token_service


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an 'Authorization: Bearer <token>' header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def authenticate_request(
    authorization: Optional[str], tokens: SessionTokenService
) -> CurrentPrincipal:
    """Verify the bearer token in a header value.

    Raises UnauthenticatedError when there is no token or it does not verify.
    """
    token = extract_bearer(authorization)
    if token is None:
        raise UnauthenticatedError("No token provided")
    try:
        principal_id = tokens.verify(token)
    except InvalidTokenError as e:
        raise UnauthenticatedError(e.detail) from e
    return CurrentPrincipal(id=principal_id)


async def get_current_principal(
    request: Request,
    authorization: Optional[str] = Header(None),
    tokens: SessionTokenService = Depends(get_token_service),
) -> CurrentPrincipal:
    """Required auth (401 if no valid token)."""
    principal = authenticate_request(authorization, tokens)
    request.state.principal = principal
    return principal


async def get_current_principal_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
    tokens: SessionTokenService = Depends(get_token_service),
) -> Optional[CurrentPrincipal]:
    """Soft auth: a missing or invalid token just means anonymous."""
    try:
        principal = authenticate_request(authorization, tokens)
    except UnauthenticatedError:
        principal = None
    request.state.principal = principal
    return principal
