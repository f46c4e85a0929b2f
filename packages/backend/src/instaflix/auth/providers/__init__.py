"""Identity provider registry — pluggable OAuth login backends.

The registry provides a simple interface:
    provider = get_provider("google", settings)
    assertion = await provider.verify_external_assertion(request.query_params)

Only Google is wired up today; add more with register_provider().
"""

from instaflix.auth.providers.base import ExternalAssertion, IdentityProvider
from instaflix.auth.providers.google import GoogleProvider
from instaflix.config import Settings

__all__ = [
    "ExternalAssertion",
    "IdentityProvider",
    "get_provider",
    "list_providers",
    "register_provider",
]

# ─── Registry ──────────────────────────────────────────────

_PROVIDERS: dict[str, type] = {
    "google": GoogleProvider,
}


def get_provider(name: str, settings: Settings) -> IdentityProvider:
    """Build a provider instance by name from settings.

    Raises ValueError if the provider is not registered.
    """
    cls = _PROVIDERS.get(name)
    if not cls:
        available = ", ".join(sorted(_PROVIDERS.keys()))
        raise ValueError(f"Unknown identity provider '{name}'. Available: {available}")
    return cls.from_settings(settings)


def list_providers() -> list[str]:
    """List registered provider names."""
    return sorted(_PROVIDERS.keys())


def register_provider(name: str, provider_cls: type) -> None:
    """Register a provider class exposing from_settings(settings)."""
    _PROVIDERS[name] = provider_cls
