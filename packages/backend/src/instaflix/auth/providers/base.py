"""External identity provider base — pluggable OAuth strategies.

The federated resolver never sees a provider's wire format. Each provider
turns its own callback data (authorization code, etc.) into an
ExternalAssertion; the resolver only consumes that value object.

Verifying the assertion (code exchange, talking to the provider) is the
provider's job. Once an assertion is returned it is trusted.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class ExternalAssertion:
    """A provider-verified identity."""

    external_id: str
    email: str
    display_name: str = ""
    avatar_url: Optional[str] = None


class IdentityProvider(ABC):
    """Abstract base for OAuth identity providers.

    Implement this to add a new login provider, then register it with
    register_provider() in instaflix.auth.providers.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier, e.g. 'google'."""

    @abstractmethod
    def authorization_url(self, state: str) -> str:
        """URL the browser is redirected to for the consent screen."""

    @abstractmethod
    async def verify_external_assertion(
        self, callback_data: Mapping[str, str]
    ) -> ExternalAssertion:
        """Turn the provider's callback parameters into a verified assertion.

        Raises ProviderError if the handshake fails.
        """
