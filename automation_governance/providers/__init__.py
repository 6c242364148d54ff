"""Provider adapters.

This module is the entry point for resolving a provider identifier to the
adapter that fetches and normalizes its workflows.
"""

from automation_governance.models import AutomationProvider
from automation_governance.providers.base import (
    ProviderAdapter,
    ProviderConfigError,
    ProviderError,
    ProviderFetchError,
    ProviderRegistry,
    UnknownProviderError,
)

# Import adapters to trigger registration via @ProviderRegistry.register
from automation_governance.providers.n8n import N8nAdapter  # noqa: F401
from automation_governance.providers.make import MakeAdapter  # noqa: F401


def get_provider_adapter(provider: AutomationProvider | str) -> ProviderAdapter:
    """Get the adapter for a specific provider."""
    return ProviderRegistry.get(provider)


def get_registered_providers() -> list[AutomationProvider]:
    """Get all registered providers."""
    return ProviderRegistry.list_providers()


__all__ = [
    "MakeAdapter",
    "N8nAdapter",
    "ProviderAdapter",
    "ProviderConfigError",
    "ProviderError",
    "ProviderFetchError",
    "ProviderRegistry",
    "UnknownProviderError",
    "get_provider_adapter",
    "get_registered_providers",
]
