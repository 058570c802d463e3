"""
Provider contract shared by all LLM backends.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, List, Optional

from ensemble.models.orchestration_models import (
    ChatMessage,
    ChatOptions,
    ChatResponse,
    MessageRole,
    ProviderProfile
)


logger = logging.getLogger(__name__)


class Provider(ABC):
    """
    Abstract LLM backend.

    Identity and capability profile are fixed for the process lifetime.
    Availability and health are evaluated on every query and never cached.
    """

    # Name of the chunk normalizer used for this provider's stream chunks
    chunk_format = "text"

    def __init__(self, name: str, profile: Optional[ProviderProfile] = None, enabled: bool = True):
        """
        Initialize the provider.

        Args:
            name: Unique provider name
            profile: Capability profile
            enabled: Whether the provider may be used at all
        """
        self.name = name
        self.profile = profile or ProviderProfile()
        self.enabled = enabled

    @property
    def is_available(self) -> bool:
        """True when the provider is enabled and its credentials are configured."""
        return self.enabled and self.has_credentials()

    def has_credentials(self) -> bool:
        return True

    async def check_health(self) -> bool:
        """
        Ping the backend with a minimal request.

        Returns:
            True if the backend answered, False otherwise
        """
        try:
            response = await self.chat(
                [ChatMessage(MessageRole.USER, "ping")],
                ChatOptions(max_tokens=5)
            )
            return response is not None
        except Exception as e:
            logger.warning(f"Health check failed for {self.name}: {e}")
            return False

    @abstractmethod
    async def chat(self, messages: List[ChatMessage], options: Optional[ChatOptions] = None) -> ChatResponse:
        """
        Generate a complete reply.

        Args:
            messages: Conversation, system message first when present
            options: Generation options

        Returns:
            ChatResponse with the full content
        """

    @abstractmethod
    def stream_chat(self, messages: List[ChatMessage], options: Optional[ChatOptions] = None) -> AsyncIterator[Any]:
        """
        Generate a reply as a finite async iterator of native chunks.

        Args:
            messages: Conversation, system message first when present
            options: Generation options

        Returns:
            Async iterator of provider-native chunks
        """

    async def close(self):
        """Release any client resources."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(name={self.name}, enabled={self.enabled})>"


def split_system_prompt(messages: List[ChatMessage]):
    """
    Separate system messages from the conversation turns.

    Returns:
        Tuple of (system prompt text, remaining messages)
    """
    system_parts = [m.content for m in messages if m.role == MessageRole.SYSTEM]
    turns = [m for m in messages if m.role != MessageRole.SYSTEM]
    return "\n\n".join(system_parts), turns
