"""Federated identity resolver — map a provider assertion to one user.

Resolution order:
1. A user already carrying this provider id → repeat login, returned as-is.
2. A user with the same email → account linking: attach the provider id
   (and the avatar if the user has none).
3. Otherwise a new user with a derived username and no password.

Repeating a resolution converges on the same user. Two concurrent first
logins for one email both reach step 3; the database unique constraint lets
only one insert win, and the loser retries from step 1, finding the winner.
A conflict while linking is final and never retried.
"""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from instaflix.auth.errors import ConflictError
from instaflix.auth.providers.base import ExternalAssertion
from instaflix.db.models import Principal
from instaflix.store.credentials import CredentialStore

logger = structlog.get_logger()

MAX_ATTEMPTS = 3


class FederatedIdentityResolver:
    """Resolves verified external assertions to principals."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = CredentialStore(db)

    async def resolve(self, assertion: ExternalAssertion) -> Principal:
        """Find, link, or create the principal for an assertion.

        Raises ConflictError at once if the email already belongs to a user
        linked to a different account, or when every create attempt loses
        its race.
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            principal = await self._find_or_link(assertion)
            if principal is not None:
                return principal
            try:
                return await self._create(assertion)
            except ConflictError as e:
                if attempt == MAX_ATTEMPTS:
                    logger.warning(
                        "federated.conflict",
                        external_id=assertion.external_id,
                        field=e.field,
                    )
                    raise
                logger.info("federated.retry", attempt=attempt, field=e.field)
        raise AssertionError("unreachable")

    async def _find_or_link(self, assertion: ExternalAssertion) -> Optional[Principal]:
        principal = await self.store.find_by_external_id(assertion.external_id)
        if principal is not None:
            logger.info("federated.login", principal_id=str(principal.id))
            return principal

        principal = await self.store.find_by_email(assertion.email)
        if principal is not None:
            return await self._link(principal, assertion)
        return None

    async def _link(
        self, principal: Principal, assertion: ExternalAssertion
    ) -> Principal:
        if principal.external_provider_id:
            # Same email, different provider account: never rebind.
            raise ConflictError(
                "Email is already linked to another external account",
                field="external_provider_id",
            )

        principal.external_provider_id = assertion.external_id
        if not principal.avatar_url and assertion.avatar_url:
            principal.avatar_url = assertion.avatar_url
        await self.store.save(principal)
        await self.db.commit()

        logger.info("federated.linked", principal_id=str(principal.id))
        return principal

    async def _create(self, assertion: ExternalAssertion) -> Principal:
        base = assertion.display_name or assertion.email.split("@")[0]
        username = await self.store.derive_username(base)
        principal = await self.store.create(
            email=assertion.email,
            username=username,
            external_provider_id=assertion.external_id,
            avatar_url=assertion.avatar_url,
        )
        await self.db.commit()

        logger.info("federated.created", principal_id=str(principal.id))
        return principal
