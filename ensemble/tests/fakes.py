"""
Test doubles shared by the unit tests.
"""

import asyncio
import json
from typing import Callable, List, Optional

from ensemble.core.brain_selector import BrainSelector
from ensemble.core.collaboration_executor import CollaborationExecutor
from ensemble.core.decision_store import DecisionStore
from ensemble.core.execution_manager import AgentInvoker
from ensemble.core.persistence import InMemoryBackend
from ensemble.core.provider_registry import ProviderRegistry
from ensemble.models.orchestration_models import (
    ChatMessage,
    ChatResponse,
    ProviderProfile,
    Strategy,
    ToolRunReport
)
from ensemble.providers.base import Provider


class FakeProvider(Provider):
    """
    In-process provider with scripted replies.

    Replies come from ``responder(messages)`` when given, otherwise from the
    ``replies`` queue, otherwise ``"<name> reply"``. Streaming splits the
    reply into ``chunk_size`` character pieces. ``aborted`` counts sleeps
    interrupted by task cancellation.
    """

    chunk_format = "text"

    def __init__(
        self,
        name: str,
        replies: Optional[List[str]] = None,
        profile: Optional[ProviderProfile] = None,
        responder: Optional[Callable[[List[ChatMessage]], str]] = None,
        available: bool = True,
        healthy: bool = True,
        fail: bool = False,
        fail_after_chunks: Optional[int] = None,
        delay: float = 0.0,
        chunk_size: int = 4,
        health_delay: float = 0.0
    ):
        super().__init__(name, profile)
        self.replies = list(replies or [])
        self.responder = responder
        self.available = available
        self.healthy = healthy
        self.fail = fail
        self.fail_after_chunks = fail_after_chunks
        self.delay = delay
        self.chunk_size = chunk_size
        self.health_delay = health_delay

        self.chat_calls: List[List[ChatMessage]] = []
        self.stream_calls: List[List[ChatMessage]] = []
        self.chat_options = []
        self.health_checks = 0
        self.stream_closed = False
        self.aborted = 0

    @property
    def calls(self) -> int:
        return len(self.chat_calls) + len(self.stream_calls)

    def has_credentials(self) -> bool:
        return self.available

    async def check_health(self) -> bool:
        self.health_checks += 1
        if self.health_delay:
            await self._sleep(self.health_delay)
        return self.healthy

    async def _sleep(self, seconds: float):
        try:
            await asyncio.sleep(seconds)
        except asyncio.CancelledError:
            self.aborted += 1
            raise

    def _reply(self, messages: List[ChatMessage]) -> str:
        if self.responder is not None:
            return self.responder(messages)
        if self.replies:
            return self.replies.pop(0)
        return f"{self.name} reply"

    async def chat(self, messages, options=None) -> ChatResponse:
        self.chat_calls.append(messages)
        self.chat_options.append(options)
        if self.delay:
            await self._sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"{self.name} exploded")
        return ChatResponse(content=self._reply(messages), model="fake", provider_name=self.name)

    async def stream_chat(self, messages, options=None):
        self.stream_calls.append(messages)
        try:
            if self.fail:
                raise RuntimeError(f"{self.name} exploded")
            reply = self._reply(messages)
            pieces = [reply[i:i + self.chunk_size] for i in range(0, len(reply), self.chunk_size)]
            for index, piece in enumerate(pieces):
                if self.fail_after_chunks is not None and index >= self.fail_after_chunks:
                    raise RuntimeError(f"{self.name} dropped the stream")
                if self.delay:
                    await self._sleep(self.delay)
                yield piece
        finally:
            self.stream_closed = True


class FakeToolExecutor:
    """Tool subsystem returning a fixed report, or raising when told to."""

    def __init__(self, report: Optional[ToolRunReport] = None, error: Optional[Exception] = None):
        self.report = report or ToolRunReport()
        self.error = error
        self.seen: List[str] = []

    async def process_tool_calls(self, content: str) -> ToolRunReport:
        self.seen.append(content)
        if self.error is not None:
            raise self.error
        return self.report


class FakeWebSearcher:
    def __init__(self, results=None):
        self.results = results or []
        self.queries: List[str] = []

    async def search(self, query: str):
        self.queries.append(query)
        return list(self.results)


def build_registry(*providers: Provider) -> ProviderRegistry:
    registry = ProviderRegistry()
    for provider in providers:
        registry.register(provider)
    return registry


def build_executor(registry: ProviderRegistry, store: Optional[DecisionStore] = None, **kwargs) -> CollaborationExecutor:
    store = store or DecisionStore(InMemoryBackend())
    return CollaborationExecutor(AgentInvoker(registry), BrainSelector(registry), store, **kwargs)


def strategy_reply(mode: str, agents: List[str], category: str = "conversation",
                   complexity: str = "moderate", **extra) -> str:
    """A Brain routing reply in the documented three-section layout."""
    payload = {
        "complexity": complexity,
        "category": category,
        "needsWebSearch": False,
        "collaborationMode": mode,
        "recommendedAgents": agents,
        "reasoning": f"{mode} fits",
    }
    payload.update(extra)
    return (
        "### 1. [Thought]\nThe user wants help.\n\n"
        f"### 2. [Decision]\nUse {mode}.\n\n"
        "### 3. [Strategy JSON]\n```json\n" + json.dumps(payload) + "\n```"
    )


def make_strategy(mode, agents, **kwargs) -> Strategy:
    return Strategy(collaboration_mode=mode, recommended_agents=list(agents), **kwargs)


def is_routing_call(messages: List[ChatMessage]) -> bool:
    return bool(messages) and "coordinating AI" in messages[0].content


async def collect(events) -> list:
    return [event async for event in events]
