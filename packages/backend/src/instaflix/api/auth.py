"""Auth API — registration, login, current user, Google login.

Routes:
- POST /auth/register → create a password user, returns a session token
- POST /auth/login → email/password → session token
- GET /auth/me → current user info
- GET /auth/google → redirect to Google's consent screen
- GET /auth/google/callback → resolve the Google identity, redirect to the
  client with ?token=...

Identity errors raised by the services are turned into HTTP responses by
the handler registered in main.py.
"""

from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from instaflix.auth.dependencies import (
    CurrentPrincipal,
    get_current_principal,
    get_token_service,
)
from instaflix.auth.errors import IdentityError
from instaflix.auth.jwt import SessionTokenService
from instaflix.auth.providers import IdentityProvider
from instaflix.db.engine import get_db
from instaflix.db.models import Principal
from instaflix.schemas.auth import (
    LoginRequest,
    PrincipalRead,
    RegisterRequest,
    SessionResponse,
)
from instaflix.services.federated_service import FederatedIdentityResolver
from instaflix.services.password_service import PasswordAuthService
from instaflix.store.credentials import CredentialStore

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")


def get_google_provider(request: Request) -> IdentityProvider:
    return request.app.state.providers["google"]


def _session_response(
    principal: Principal, tokens: SessionTokenService
) -> SessionResponse:
    return SessionResponse(
        id=principal.id,
        username=principal.username,
        email=principal.email,
        avatar_url=principal.avatar_url,
        token=tokens.issue(principal.id),
        expires_in=tokens.expires_in,
    )


# ─── Password ────────────────────────────────────────────


@router.post("/register", response_model=SessionResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    tokens: SessionTokenService = Depends(get_token_service),
):
    """Create a new password account and sign it in."""
    principal = await PasswordAuthService(db).register(
        email=body.email, password=body.password, username=body.username
    )
    return _session_response(principal, tokens)


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    tokens: SessionTokenService = Depends(get_token_service),
):
    """Login with email and password → session token."""
    principal = await PasswordAuthService(db).login(body.email, body.password)
    return _session_response(principal, tokens)


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=PrincipalRead)
async def get_me(
    current: CurrentPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Get the current authenticated user's info."""
    principal = await CredentialStore(db).find_by_id(current.id)
    if principal is None:
        raise HTTPException(status_code=404, detail="User not found")
    return principal


# ─── Google ─────────────────────────────────────────────


@router.get("/google")
async def google_login(
    provider: IdentityProvider = Depends(get_google_provider),
    tokens: SessionTokenService = Depends(get_token_service),
):
    """Start the Google login handshake."""
    return RedirectResponse(provider.authorization_url(tokens.issue_state()), status_code=302)


@router.get("/google/callback")
async def google_callback(
    request: Request,
    provider: IdentityProvider = Depends(get_google_provider),
    tokens: SessionTokenService = Depends(get_token_service),
    db: AsyncSession = Depends(get_db),
):
    """Finish Google login and hand the token to the client via redirect."""
    client_url = request.app.state.settings.client_url.rstrip("/")
    params = request.query_params
    try:
        tokens.verify_state(params.get("state"))
        assertion = await provider.verify_external_assertion(params)
        principal = await FederatedIdentityResolver(db).resolve(assertion)
    except IdentityError as e:
        logger.warning("auth.google_failed", error=e.detail)
        query = urlencode({"error": "oauth_failed"})
        return RedirectResponse(f"{client_url}/login?{query}", status_code=302)

    query = urlencode({"token": tokens.issue(principal.id)})
    return RedirectResponse(f"{client_url}?{query}", status_code=302)
