"""
Registry for configured providers, their priority order and chunk normalizers.
"""

import logging
from typing import Dict, List, Optional, Any

from ensemble.providers.base import Provider
from .chunk_normalizers import ChunkNormalizer, get_normalizer


logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry of available providers.

    Registration order is the fixed priority order used for Brain selection,
    default agent choice and capability lookups.
    """

    def __init__(self):
        """Initialize the provider registry."""
        self._providers: Dict[str, Provider] = {}
        self._normalizers: Dict[str, ChunkNormalizer] = {}

    def register(self, provider: Provider, normalizer: Optional[ChunkNormalizer] = None):
        """
        Register a provider at the end of the priority order.

        Args:
            provider: The provider to register
            normalizer: Chunk normalizer; defaults to the provider's chunk format
        """
        if provider.name in self._providers:
            raise ValueError(f"Provider '{provider.name}' is already registered")

        self._providers[provider.name] = provider
        self._normalizers[provider.name] = normalizer or get_normalizer(provider.chunk_format)
        logger.info(f"Registered provider {provider.name} (priority {len(self._providers)})")

    def get(self, name: str) -> Optional[Provider]:
        return self._providers.get(name)

    def get_normalizer(self, name: str) -> ChunkNormalizer:
        """
        Get the chunk normalizer registered for a provider.

        Raises:
            KeyError: If the provider is not registered
        """
        return self._normalizers[name]

    @property
    def priority_order(self) -> List[str]:
        return list(self._providers.keys())

    def list_providers(self) -> List[Provider]:
        return list(self._providers.values())

    def available_providers(self) -> List[Provider]:
        """
        List providers that are currently available, in priority order.

        Availability is evaluated live on every call.
        """
        return [provider for provider in self._providers.values() if provider.is_available]

    def available_names(self) -> List[str]:
        return [provider.name for provider in self.available_providers()]

    def is_available(self, name: str) -> bool:
        provider = self._providers.get(name)
        return provider is not None and provider.is_available

    def capability_table(self, available_only: bool = True) -> Dict[str, Dict[str, Any]]:
        """
        Build the capability table keyed by provider name.

        Args:
            available_only: Only include currently available providers

        Returns:
            Mapping of provider name to its capability profile dict
        """
        providers = self.available_providers() if available_only else self.list_providers()
        return {provider.name: provider.profile.to_dict() for provider in providers}

    def enable_provider(self, name: str) -> bool:
        """
        Enable a provider.

        Returns:
            True if enabled, False if not found
        """
        provider = self.get(name)
        if provider:
            provider.enabled = True
            return True
        return False

    def disable_provider(self, name: str) -> bool:
        """
        Disable a provider.

        Returns:
            True if disabled, False if not found
        """
        provider = self.get(name)
        if provider:
            provider.enabled = False
            return True
        return False

    async def close(self):
        for provider in self._providers.values():
            await provider.close()

    def get_registry_statistics(self) -> Dict[str, Any]:
        """
        Get statistics about the provider registry.

        Returns:
            Dictionary containing registry statistics
        """
        specialty_counts = {}
        for provider in self._providers.values():
            for specialty in provider.profile.specialties:
                specialty_counts[specialty] = specialty_counts.get(specialty, 0) + 1

        return {
            "total_providers": len(self._providers),
            "enabled_providers": sum(1 for p in self._providers.values() if p.enabled),
            "available_providers": len(self.available_providers()),
            "priority_order": self.priority_order,
            "providers_by_specialty": specialty_counts
        }
