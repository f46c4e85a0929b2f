"""Google OAuth 2.0 provider.

Authorization-code flow: the callback carries a code, which is exchanged
for an access token at Google's token endpoint; the OpenID userinfo
endpoint then yields the subject id, email, name and picture.
Tokens are never logged.
"""

from contextlib import asynccontextmanager
from typing import Mapping, Optional
from urllib.parse import urlencode

import httpx
import structlog

from instaflix.auth.errors import ProviderError
from instaflix.auth.providers.base import ExternalAssertion, IdentityProvider
from instaflix.config import Settings

logger = structlog.get_logger()

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = ("openid", "profile", "email")


class GoogleProvider(IdentityProvider):
    """Google login via the authorization-code flow."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleProvider":
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_callback_url,
        )

    @property
    def name(self) -> str:
        return "google"

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "state": state,
            "prompt": "select_account",
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def verify_external_assertion(
        self, callback_data: Mapping[str, str]
    ) -> ExternalAssertion:
        if callback_data.get("error"):
            raise ProviderError(f"Google denied the login: {callback_data['error']}")
        code = callback_data.get("code")
        if not code:
            raise ProviderError("Missing authorization code")

        async with self._client() as client:
            access_token = await self._exchange_code(client, code)
            profile = await self._fetch_profile(client, access_token)

        if not profile.get("sub") or not profile.get("email"):
            raise ProviderError("Google profile is missing id or email")
        if profile.get("email_verified") is False:
            raise ProviderError("Google email address is not verified")

        return ExternalAssertion(
            external_id=str(profile["sub"]),
            email=profile["email"],
            display_name=profile.get("name") or "",
            avatar_url=profile.get("picture"),
        )

    @asynccontextmanager
    async def _client(self):
        if self._http is not None:
            yield self._http
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        data = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            r = await client.post(TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            logger.warning("google.token_exchange_unreachable", error=str(e))
            raise ProviderError("Google token endpoint unreachable") from e

        if r.status_code != 200:
            error = _error_code(r)
            logger.warning("google.token_exchange_failed", status=r.status_code, error=error)
            raise ProviderError(f"Google token exchange failed: {error}")

        access_token = r.json().get("access_token")
        if not access_token:
            raise ProviderError("Google token response had no access token")
        return access_token

    async def _fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> dict:
        try:
            r = await client.get(
                USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as e:
            logger.warning("google.userinfo_unreachable", error=str(e))
            raise ProviderError("Google userinfo endpoint unreachable") from e

        if r.status_code != 200:
            logger.warning("google.userinfo_failed", status=r.status_code)
            raise ProviderError("Could not fetch Google profile")
        return r.json()


def _error_code(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "unknown"
    if isinstance(body, dict):
        return str(body.get("error", "unknown"))
    return "unknown"
