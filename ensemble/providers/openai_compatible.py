"""
Provider adapter for OpenAI-compatible chat completion endpoints.
"""

import json
import logging
import os
from typing import Any, AsyncIterator, List, Optional

import httpx

from ensemble.models.orchestration_models import (
    ChatMessage,
    ChatOptions,
    ChatResponse,
    ProviderProfile
)
from .base import Provider


logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(Provider):
    """
    Adapter for any backend exposing ``/chat/completions`` with SSE streaming.

    Used for both OpenAI and xAI endpoints; they differ only in base URL,
    key variable and model.
    """

    chunk_format = "openai_delta"

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key_env: str,
        model: str,
        profile: Optional[ProviderProfile] = None,
        timeout: float = 120.0,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(name, profile)
        self.base_url = base_url.rstrip("/")
        self.api_key_env = api_key_env
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client

    def has_credentials(self) -> bool:
        return bool(os.environ.get(self.api_key_env))

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {os.environ.get(self.api_key_env, '')}",
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    def _build_payload(self, messages: List[ChatMessage], options: Optional[ChatOptions], stream: bool):
        options = options or ChatOptions()
        payload = {
            "model": self.model,
            "messages": [message.to_dict() for message in messages],
            "max_tokens": options.max_tokens or self.max_tokens,
            "temperature": options.temperature if options.temperature is not None else self.temperature,
        }
        if stream:
            payload["stream"] = True
        return payload

    async def chat(self, messages: List[ChatMessage], options: Optional[ChatOptions] = None) -> ChatResponse:
        client = self._get_client()
        response = await client.post("/chat/completions", json=self._build_payload(messages, options, False))
        response.raise_for_status()
        data = response.json()

        choice = data["choices"][0]
        return ChatResponse(
            content=choice["message"].get("content") or "",
            model=data.get("model", self.model),
            provider_name=self.name,
            usage=data.get("usage", {}),
        )

    async def stream_chat(self, messages: List[ChatMessage], options: Optional[ChatOptions] = None) -> AsyncIterator[Any]:
        client = self._get_client()
        async with client.stream(
            "POST",
            "/chat/completions",
            json=self._build_payload(messages, options, True)
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data_str = line[5:].strip()
                if data_str == "[DONE]":
                    break
                try:
                    yield json.loads(data_str)
                except json.JSONDecodeError:
                    logger.debug(f"Skipping malformed stream line from {self.name}: {data_str[:80]}")

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
