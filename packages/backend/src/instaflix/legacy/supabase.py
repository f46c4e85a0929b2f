"""Legacy identity source — users of the retired Supabase auth store.

Only the migration tool reads this. The admin API pages through users;
each raw user is reduced to a LegacyUser, the input format of
IdentityMigrator. Nothing here is used while serving requests.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol

import httpx
import structlog

logger = structlog.get_logger()

UNKNOWN_LEGACY_ID = "<missing id>"


@dataclass(frozen=True)
class LegacyUser:
    """One user record from the legacy store."""

    legacy_id: str
    email: Optional[str]
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    provider_subject: Optional[str] = None  # Google id if they used Google there
    error: Optional[str] = None  # set when the raw record could not be parsed


class LegacyIdentitySource(Protocol):
    """Anything that can enumerate legacy users page by page."""

    def pages(self) -> AsyncIterator[list[LegacyUser]]:
        ...


class SupabaseAdminSource:
    """Pages through GET /auth/v1/admin/users with the service-role key."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        per_page: int = 50,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        if not url or not service_role_key:
            raise ValueError("Supabase URL and service role key are required")
        self.url = url.rstrip("/")
        self.service_role_key = service_role_key
        self.per_page = per_page
        self.timeout = timeout
        self._http = http_client

    async def pages(self) -> AsyncIterator[list[LegacyUser]]:
        headers = {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
        }
        client = self._http or httpx.AsyncClient(timeout=self.timeout)
        try:
            page = 1
            while True:
                r = await client.get(
                    f"{self.url}/auth/v1/admin/users",
                    params={"page": page, "per_page": self.per_page},
                    headers=headers,
                )
                r.raise_for_status()
                raw_users = r.json().get("users") or []
                logger.info("legacy.page_fetched", page=page, users=len(raw_users))
                if not raw_users:
                    return

                yield [_parse_or_flag(raw) for raw in raw_users]

                if len(raw_users) < self.per_page:
                    return
                page += 1
        finally:
            if self._http is None:
                await client.aclose()


def _parse_or_flag(raw) -> LegacyUser:
    """parse_user, but a malformed record becomes a flagged LegacyUser.

    The migrator counts flagged records as failures and moves on.
    """
    try:
        return parse_user(raw)
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raw_id = raw.get("id") if isinstance(raw, dict) else None
        legacy_id = str(raw_id) if raw_id else UNKNOWN_LEGACY_ID
        logger.warning("legacy.record_unparseable", legacy_id=legacy_id, error=repr(e))
        return LegacyUser(legacy_id=legacy_id, email=None, error=f"Malformed legacy record: {e!r}")


def parse_user(raw: dict) -> LegacyUser:
    """Reduce a Supabase admin user object to a LegacyUser."""
    if not raw.get("id"):
        raise KeyError("id")
    metadata = raw.get("user_metadata") or {}
    return LegacyUser(
        legacy_id=str(raw["id"]),
        email=raw.get("email") or None,
        username=metadata.get("username"),
        avatar_url=metadata.get("avatar") or metadata.get("avatar_url") or None,
        provider_subject=_google_subject(raw, metadata),
    )


def _google_subject(raw: dict, metadata: dict) -> Optional[str]:
    for identity in raw.get("identities") or []:
        if identity.get("provider") != "google":
            continue
        data = identity.get("identity_data") or {}
        subject = data.get("sub") or identity.get("id")
        if subject:
            return str(subject)
    # Older exports carry no identities; trust user_metadata.sub only for
    # users Supabase says signed in with Google.
    app_metadata = raw.get("app_metadata") or {}
    providers = app_metadata.get("providers") or [app_metadata.get("provider")]
    subject = metadata.get("sub")
    if "google" in providers and subject and str(subject) != str(raw["id"]):
        return str(subject)
    return None
