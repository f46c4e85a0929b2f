"""Credential store — the users table as the single source of identity.

Lookups normalize email (trimmed, lower-cased) so uniqueness is
case-insensitive. Writes flush but do not commit: the calling service owns
the transaction, so a user upsert and the rows that depend on it can land
atomically. A uniqueness violation rolls the session back before raising
ConflictError, leaving no half-created user behind.
"""

import re
import secrets
import string
import uuid
from typing import Optional, Union

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from instaflix.auth.errors import ConflictError
from instaflix.db.models import Principal

# Columns with a unique constraint, in the order conflicts are reported.
UNIQUE_FIELDS = ("email", "username", "external_provider_id", "legacy_store_id")

USERNAME_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
USERNAME_ATTEMPTS = 10


def normalize_email(email: str) -> str:
    return email.strip().lower()


def slugify_username(raw: str) -> str:
    """Lower-case, drop whitespace and anything outside [a-z0-9_]."""
    return re.sub(r"[^a-z0-9_]", "", raw.lower())[:90]


def _username_suffix() -> str:
    return "".join(secrets.choice(USERNAME_SUFFIX_ALPHABET) for _ in range(4))


class CredentialStore:
    """Data access for principals."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Lookups ────────────────────────────────────────

    async def find_by_email(self, email: str) -> Optional[Principal]:
        return await self._first(Principal.email == normalize_email(email))

    async def find_by_external_id(self, external_id: str) -> Optional[Principal]:
        return await self._first(Principal.external_provider_id == external_id)

    async def find_by_legacy_id(self, legacy_id: str) -> Optional[Principal]:
        return await self._first(Principal.legacy_store_id == legacy_id)

    async def find_by_id(
        self, principal_id: Union[uuid.UUID, str]
    ) -> Optional[Principal]:
        if not isinstance(principal_id, uuid.UUID):
            try:
                principal_id = uuid.UUID(str(principal_id))
            except ValueError:
                return None
        return await self.db.get(Principal, principal_id)

    async def find_by_legacy_id_or_email(
        self, legacy_id: str, email: str
    ) -> Optional[Principal]:
        """Legacy id wins over email when both match different users."""
        principal = await self.find_by_legacy_id(legacy_id)
        if principal is None:
            principal = await self.find_by_email(email)
        return principal

    async def username_taken(self, username: str) -> bool:
        return await self._first(Principal.username == username) is not None

    async def derive_username(
        self, base: str, separator: str = "", bare_first: bool = False
    ) -> str:
        """Pick a free username from a display name or email local part.

        Appends a random 4-char suffix (re-drawn on collision); with
        bare_first the unsuffixed slug is tried first.
        """
        slug = slugify_username(base) or "user"
        if bare_first and not await self.username_taken(slug):
            return slug
        for _ in range(USERNAME_ATTEMPTS):
            candidate = f"{slug}{separator}{_username_suffix()}"
            if not await self.username_taken(candidate):
                return candidate
        raise ConflictError("Could not derive a unique username", field="username")

    # ─── Writes ─────────────────────────────────────────

    async def create(self, **fields) -> Principal:
        """Insert a new principal.

        Raises ConflictError if any unique field is already bound and
        ValueError if the principal would have no credential at all.
        """
        fields["email"] = normalize_email(fields["email"])
        if not fields.get("password_hash") and not fields.get("external_provider_id"):
            raise ValueError("A principal needs a password hash or an external provider id")

        await self._ensure_unique(fields)

        principal = Principal(**fields)
        self.db.add(principal)
        await self._flush()
        return principal

    async def save(self, principal: Principal) -> Principal:
        """Flush changes to an existing principal."""
        self.db.add(principal)
        await self._flush()
        return principal

    # ─── Internals ──────────────────────────────────────

    async def _first(self, *criteria) -> Optional[Principal]:
        result = await self.db.execute(select(Principal).where(*criteria))
        return result.scalars().first()

    async def _ensure_unique(self, fields: dict) -> None:
        clauses = [
            getattr(Principal, name) == fields[name]
            for name in UNIQUE_FIELDS
            if fields.get(name) is not None
        ]
        existing = await self._first(or_(*clauses))
        if existing is None:
            return
        for name in UNIQUE_FIELDS:
            if fields.get(name) is not None and getattr(existing, name) == fields[name]:
                label = name.replace("_", " ").capitalize()
                raise ConflictError(f"{label} already registered", field=name)

    async def _flush(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Lost a race against a concurrent insert of the same value.
            await self.db.rollback()
            raise ConflictError("Already registered", field=_conflicting_field(e)) from e


def _conflicting_field(error: IntegrityError) -> Optional[str]:
    message = str(error.orig).lower()
    for name in UNIQUE_FIELDS:
        if name in message:
            return name
    return None
