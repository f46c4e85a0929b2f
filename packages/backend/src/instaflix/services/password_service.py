"""Password auth service — registration and email/password login.

API routes call this; it owns the transaction around the credential store.
Login failures all raise the same InvalidCredentialsError so the response
never reveals whether an email is registered.
"""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from instaflix.auth.errors import ConflictError, InvalidCredentialsError
from instaflix.auth.password import (
    dummy_verify,
    hash_password,
    needs_rehash,
    verify_password,
)
from instaflix.db.models import Principal
from instaflix.store.credentials import CredentialStore, normalize_email

logger = structlog.get_logger()


class PasswordAuthService:
    """Business logic for password principals."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = CredentialStore(db)

    async def register(
        self, email: str, password: str, username: Optional[str] = None
    ) -> Principal:
        """Create a password principal.

        Raises ConflictError if the email is already bound, telling Google
        users to keep using Google.
        """
        email = normalize_email(email)
        existing = await self.store.find_by_email(email)
        if existing is not None:
            if existing.external_provider_id:
                raise ConflictError(
                    "User already exists with Google. Please login with Google.",
                    field="email",
                )
            raise ConflictError("User already exists", field="email")

        if username is None:
            username = await self.store.derive_username(
                email.split("@")[0], bare_first=True
            )

        principal = await self.store.create(
            email=email,
            username=username,
            password_hash=hash_password(password),
        )
        await self.db.commit()

        logger.info("auth.registered", principal_id=str(principal.id))
        return principal

    async def login(self, email: str, password: str) -> Principal:
        """Check an email/password pair and return its principal."""
        principal = await self.store.find_by_email(email)

        if principal is None or not principal.password_hash:
            dummy_verify(password)
            logger.info("auth.login_failed", reason="unknown_or_federated")
            raise InvalidCredentialsError()

        if not verify_password(password, principal.password_hash):
            logger.info("auth.login_failed", reason="bad_password", principal_id=str(principal.id))
            raise InvalidCredentialsError()

        # Upgrade hashes made at a lower cost (e.g. the old service's cost 10)
        if needs_rehash(principal.password_hash):
            principal.password_hash = hash_password(password)
            await self.store.save(principal)
            await self.db.commit()
            logger.info("auth.password_rehashed", principal_id=str(principal.id))

        logger.info("auth.login", principal_id=str(principal.id))
        return principal
