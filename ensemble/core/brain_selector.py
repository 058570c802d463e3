"""
Selection of the coordinating provider (the Brain).
"""

import asyncio
import logging
from typing import Optional

from ensemble.providers.base import Provider
from .errors import AllProvidersUnavailable
from .execution_manager import await_with_cancel
from .provider_registry import ProviderRegistry


logger = logging.getLogger(__name__)


class BrainSelector:
    """Pick the first available and healthy provider in priority order."""

    def __init__(self, registry: ProviderRegistry, health_timeout: float = 10.0):
        self.registry = registry
        self.health_timeout = health_timeout
        self.current_brain: Optional[Provider] = None

    async def select_brain(self, cancel_event: Optional[asyncio.Event] = None) -> Provider:
        """
        Walk the priority order and return the first healthy provider.

        Each call re-walks the full order; there are no retries within a call.
        A health check that does not answer within ``health_timeout`` counts
        as unhealthy.

        Args:
            cancel_event: Caller cancellation signal

        Returns:
            The selected provider

        Raises:
            AllProvidersUnavailable: If no provider is both available and healthy
            OperationCancelled: If the caller cancelled
        """
        tried = []
        for provider in self.registry.list_providers():
            if not provider.is_available:
                logger.debug(f"Skipping unavailable provider {provider.name}")
                continue

            tried.append(provider.name)
            try:
                healthy = await await_with_cancel(provider.check_health(), self.health_timeout, cancel_event)
            except asyncio.TimeoutError:
                logger.warning(f"Health check of {provider.name} timed out after {self.health_timeout}s")
                healthy = False

            if healthy:
                self.current_brain = provider
                logger.info(f"Selected {provider.name} as Brain")
                return provider

            logger.warning(f"Provider {provider.name} failed health check, trying next")

        logger.error(f"No healthy provider found (tried: {tried})")
        raise AllProvidersUnavailable(tried=tried)
