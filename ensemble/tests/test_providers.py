"""
Unit tests for provider adapters and provider configuration.
"""

import json

import httpx
import pytest
from unittest.mock import AsyncMock, Mock, patch

from ensemble.config.provider_config import PROVIDER_PROFILES, create_provider_registry
from ensemble.config.settings import DEFAULT_PROVIDER_PRIORITY, EngineSettings, load_settings
from ensemble.core.chunk_normalizers import openai_delta, strands_event
from ensemble.models.orchestration_models import ChatMessage, ChatOptions, MessageRole
from ensemble.providers import OpenAICompatibleProvider, StrandsProvider
from ensemble.providers.base import split_system_prompt
from ensemble.providers.strands_provider import to_agent_messages


MESSAGES = [
    ChatMessage(MessageRole.SYSTEM, "be nice"),
    ChatMessage(MessageRole.USER, "first"),
    ChatMessage(MessageRole.ASSISTANT, "reply"),
    ChatMessage(MessageRole.USER, "second"),
]


def openai_provider(handler, **kwargs):
    client = httpx.AsyncClient(base_url="https://api.test/v1", transport=httpx.MockTransport(handler))
    return OpenAICompatibleProvider(
        name="ChatGPT",
        base_url="https://api.test/v1",
        api_key_env="TEST_OPENAI_KEY",
        model="gpt-test",
        client=client,
        **kwargs
    )


class TestOpenAICompatibleProvider:
    """Test OpenAICompatibleProvider class."""

    def test_credentials_from_environment(self, monkeypatch):
        provider = openai_provider(lambda request: httpx.Response(200))

        monkeypatch.delenv("TEST_OPENAI_KEY", raising=False)
        assert provider.is_available is False

        monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
        assert provider.is_available is True

    @pytest.mark.asyncio
    async def test_chat(self):
        """Test the buffered completion request and response mapping."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "model": "gpt-test-0001",
                "choices": [{"message": {"role": "assistant", "content": "Hello!"}}],
                "usage": {"total_tokens": 12}
            })

        provider = openai_provider(handler)
        response = await provider.chat(MESSAGES, ChatOptions(max_tokens=50, temperature=0.1))

        assert response.content == "Hello!"
        assert response.model == "gpt-test-0001"
        assert response.provider_name == "ChatGPT"
        assert response.usage == {"total_tokens": 12}
        assert seen["path"] == "/v1/chat/completions"
        assert seen["body"]["messages"][0] == {"role": "system", "content": "be nice"}
        assert seen["body"]["max_tokens"] == 50
        assert seen["body"]["temperature"] == 0.1
        assert "stream" not in seen["body"]

    @pytest.mark.asyncio
    async def test_chat_http_error(self):
        provider = openai_provider(lambda request: httpx.Response(429, json={"error": "rate limited"}))

        with pytest.raises(httpx.HTTPStatusError):
            await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_stream_chat(self):
        """Test parsing of server-sent events up to the DONE marker."""
        body = "\n".join([
            'data: {"choices":[{"delta":{"role":"assistant"}}]}',
            "",
            'data: {"choices":[{"delta":{"content":"Hel"}}]}',
            "",
            ": keep-alive",
            "data: not-json",
            'data: {"choices":[{"delta":{"content":"lo"}}]}',
            "",
            "data: [DONE]",
            "",
            'data: {"choices":[{"delta":{"content":"ignored"}}]}',
        ])
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=body.encode(), headers={"content-type": "text/event-stream"})

        provider = openai_provider(handler)
        chunks = [chunk async for chunk in provider.stream_chat(MESSAGES)]

        assert seen["body"]["stream"] is True
        assert len(chunks) == 3
        assert [openai_delta(chunk) for chunk in chunks] == [None, "Hel", "lo"]

    @pytest.mark.asyncio
    async def test_close(self):
        provider = openai_provider(lambda request: httpx.Response(200))
        client = provider._client

        await provider.close()

        assert client.is_closed
        assert provider._client is None


class TestStrandsProvider:
    """Test StrandsProvider class."""

    def build(self, **kwargs):
        self.model_factory = Mock(return_value="bedrock-model")
        return StrandsProvider(
            name="Claude",
            model_id="anthropic.test-model",
            model_factory=self.model_factory,
            **kwargs
        )

    def test_credentials_from_session(self):
        session = Mock()
        session.get_credentials.return_value = object()
        assert self.build(session=session).is_available is True

        session.get_credentials.return_value = None
        assert self.build(session=session).is_available is False

    @pytest.mark.asyncio
    async def test_chat_builds_fresh_agent(self):
        """Test that history, system prompt and prompt are mapped onto the agent."""
        provider = self.build()
        agent = Mock()
        agent.invoke_async = AsyncMock(return_value="  Bedrock says hi \n")

        with patch("ensemble.providers.strands_provider.Agent", return_value=agent) as agent_cls:
            response = await provider.chat(MESSAGES, ChatOptions(max_tokens=100, temperature=0.2))

        assert response.content == "Bedrock says hi"
        assert response.provider_name == "Claude"
        agent.invoke_async.assert_awaited_once_with("second")

        kwargs = agent_cls.call_args.kwargs
        assert kwargs["model"] == "bedrock-model"
        assert kwargs["system_prompt"] == "be nice"
        assert kwargs["messages"] == [
            {"role": "user", "content": [{"text": "first"}]},
            {"role": "assistant", "content": [{"text": "reply"}]},
        ]
        assert kwargs["callback_handler"] is None
        self.model_factory.assert_called_once_with(
            "anthropic.test-model", region_name="us-east-1", temperature=0.2, max_tokens=100
        )

    @pytest.mark.asyncio
    async def test_stream_chat_yields_sdk_events(self):
        provider = self.build()

        async def events(prompt):
            yield {"init_event_loop": True}
            yield {"data": "Hi"}
            yield {"data": " there"}

        agent = Mock()
        agent.stream_async = events

        with patch("ensemble.providers.strands_provider.Agent", return_value=agent):
            chunks = [chunk async for chunk in provider.stream_chat(MESSAGES)]

        assert [strands_event(chunk) for chunk in chunks] == [None, "Hi", " there"]

    @pytest.mark.asyncio
    async def test_chat_requires_user_turn(self):
        provider = self.build()

        with pytest.raises(ValueError):
            await provider.chat([ChatMessage(MessageRole.SYSTEM, "only system")])


class TestMessageHelpers:
    """Test conversation helpers."""

    def test_split_system_prompt(self):
        system, turns = split_system_prompt(MESSAGES)

        assert system == "be nice"
        assert [t.content for t in turns] == ["first", "reply", "second"]

    def test_to_agent_messages(self):
        assert to_agent_messages([ChatMessage(MessageRole.USER, "x")]) == [
            {"role": "user", "content": [{"text": "x"}]}
        ]


class TestProviderConfig:
    """Test settings and the default provider set."""

    def test_default_registry(self):
        """Test the four providers in priority order with their profiles."""
        registry = create_provider_registry(EngineSettings())

        assert registry.priority_order == DEFAULT_PROVIDER_PRIORITY
        assert registry.get("Claude").profile.deep_reasoning is True
        assert "technical" in registry.get("ChatGPT").profile.specialties
        assert registry.get_normalizer("ChatGPT") is openai_delta
        assert registry.get_normalizer("Llama") is strands_event
        assert set(PROVIDER_PROFILES) == set(DEFAULT_PROVIDER_PRIORITY)

    def test_custom_priority_skips_unknown(self):
        registry = create_provider_registry(EngineSettings(provider_priority=["Grok", "Mystery", "ChatGPT"]))
        assert registry.priority_order == ["Grok", "ChatGPT"]

    def test_load_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("ENSEMBLE_PROVIDER_PRIORITY", "Claude, ChatGPT")
        monkeypatch.setenv("ENSEMBLE_AGENT_TIMEOUT", "30")
        monkeypatch.setenv("ENSEMBLE_CONTEXT_WINDOW", "6")
        monkeypatch.setenv("ENSEMBLE_DATABASE_URL", "sqlite:///ensemble.db")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.delenv("ENSEMBLE_STREAM_TIMEOUT", raising=False)

        settings = load_settings()

        assert settings.provider_priority == ["Claude", "ChatGPT"]
        assert settings.agent_timeout == 30.0
        assert settings.context_window == 6
        assert settings.database_url == "sqlite:///ensemble.db"
        assert settings.port == 9000
        assert settings.stream_timeout == 180.0

    def test_load_settings_defaults(self, monkeypatch):
        for name in ("ENSEMBLE_PROVIDER_PRIORITY", "ENSEMBLE_DATABASE_URL", "ENSEMBLE_CONTEXT_TTL"):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings()

        assert settings.provider_priority == DEFAULT_PROVIDER_PRIORITY
        assert settings.database_url is None
        assert settings.context_ttl == 300.0
