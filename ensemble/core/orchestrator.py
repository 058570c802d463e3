"""
Top-level orchestration of one chat turn.
"""

import logging
from contextlib import aclosing
from dataclasses import replace
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from ensemble.config.provider_config import create_provider_registry
from ensemble.config.settings import EngineSettings, load_settings
from ensemble.models.orchestration_models import (
    ChatTurnRequest,
    CollaborationResult,
    MessageRole,
    StreamEvent,
    StreamEventType,
    Strategy
)
from .brain_selector import BrainSelector
from .collaboration_executor import CollaborationExecutor
from .decision_store import DecisionStore
from .errors import OperationCancelled
from .execution_manager import AgentInvoker
from .persistence import InMemoryBackend, MemoryBackend, SqlAlchemyBackend
from .prompt_builder import SystemPromptBuilder
from .provider_registry import ProviderRegistry
from .strategy_analyzer import StrategyAnalyzer
from .tool_bridge import ToolBridge, ToolExecutor


logger = logging.getLogger(__name__)


class WebSearcher(Protocol):
    """External web search collaborator."""

    async def search(self, query: str) -> List[Dict[str, Any]]:
        ...


def encode_event(event: StreamEvent) -> str:
    """Encode one stream event as a single JSON line."""
    return event.to_json_line()


class Orchestrator:
    """
    Composition root for a turn.

    Stores the user message, analyzes, executes and stores the assistant
    reply. The streaming entry point never raises and always ends with exactly
    one ``done`` or ``error`` event.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store: DecisionStore,
        analyzer: StrategyAnalyzer,
        executor: CollaborationExecutor,
        web_searcher: Optional[WebSearcher] = None
    ):
        self.registry = registry
        self.store = store
        self.analyzer = analyzer
        self.executor = executor
        self.web_searcher = web_searcher

    async def _with_search_results(self, request: ChatTurnRequest, strategy: Strategy) -> ChatTurnRequest:
        if request.search_results or not strategy.needs_web_search or self.web_searcher is None:
            return request
        try:
            results = await self.web_searcher.search(request.message)
        except Exception as e:
            logger.warning(f"Web search failed, continuing without results: {e}")
            return request
        logger.info(f"Added {len(results)} web search result(s) to the turn")
        return replace(request, search_results=results)

    async def _analyze(self, request: ChatTurnRequest) -> Strategy:
        if request.cancelled:
            raise OperationCancelled("Turn cancelled before analysis")
        strategy = await self.analyzer.analyze(
            request.user_id,
            request.session_id,
            request.message,
            timeout=request.timeout,
            cancel_event=request.cancel_event
        )
        if request.cancelled:
            raise OperationCancelled("Turn cancelled after analysis")
        return strategy

    def _assistant_metadata(self, strategy: Strategy, agents_used: List[str], request: ChatTurnRequest, extra: Dict[str, Any]):
        metadata = {
            "strategy": strategy.collaboration_mode.value,
            "agents_used": list(agents_used),
            "search_results": request.search_results
        }
        metadata.update(extra)
        return metadata

    async def process(self, request: ChatTurnRequest) -> CollaborationResult:
        """
        Handle a turn and return the buffered result.

        Args:
            request: Turn request

        Returns:
            CollaborationResult of the executed strategy

        Raises:
            OrchestrationError: On any fatal failure of the turn
        """
        if request.cancelled:
            raise OperationCancelled("Turn cancelled before it started")
        await self.store.add_turn(request.user_id, request.session_id, MessageRole.USER, request.message)

        strategy = await self._analyze(request)
        request = await self._with_search_results(request, strategy)
        result = await self.executor.execute(request, strategy)

        await self.store.add_turn(
            request.user_id,
            request.session_id,
            MessageRole.ASSISTANT,
            result.content,
            self._assistant_metadata(strategy, result.agents_used, request, result.metadata)
        )
        result.metadata["strategy"] = strategy.to_dict()
        return result

    async def process_stream(self, request: ChatTurnRequest) -> AsyncIterator[StreamEvent]:
        """
        Handle a turn as a stream of events.

        Yields:
            Stream events; the last one is ``done`` or ``error``
        """
        try:
            if request.cancelled:
                raise OperationCancelled("Turn cancelled before it started")
            await self.store.add_turn(request.user_id, request.session_id, MessageRole.USER, request.message)

            strategy = await self._analyze(request)
            request = await self._with_search_results(request, strategy)
            run = await self.executor.prepare(request, strategy, streaming=True)

            async with aclosing(self.executor.execute_stream(request, strategy, run)) as events:
                async for event in events:
                    if event.type == StreamEventType.DONE:
                        await self.store.add_turn(
                            request.user_id,
                            request.session_id,
                            MessageRole.ASSISTANT,
                            run.content,
                            self._assistant_metadata(strategy, run.agents_used, request, run.metadata)
                        )
                    yield event
                    if event.is_terminal:
                        return
        except Exception as e:
            logger.error(f"Streaming turn failed: {e}")
            yield StreamEvent.error(str(e) or type(e).__name__)

    async def stream_lines(self, request: ChatTurnRequest) -> AsyncIterator[str]:
        """Wire form of ``process_stream``: one JSON object per line."""
        async for event in self.process_stream(request):
            yield encode_event(event)

    async def close(self):
        await self.registry.close()
        await self.store.backend.close()


def create_orchestrator(
    settings: Optional[EngineSettings] = None,
    registry: Optional[ProviderRegistry] = None,
    backend: Optional[MemoryBackend] = None,
    tool_executor: Optional[ToolExecutor] = None,
    web_searcher: Optional[WebSearcher] = None
) -> Orchestrator:
    """
    Wire an orchestrator from settings.

    Args:
        settings: Engine settings, loaded from the environment when omitted
        registry: Provider registry, built from settings when omitted
        backend: Persistence backend, chosen from settings when omitted
        tool_executor: Optional tool subsystem
        web_searcher: Optional web search collaborator

    Returns:
        Ready-to-use Orchestrator
    """
    settings = settings or load_settings()
    registry = registry or create_provider_registry(settings)
    if backend is None:
        backend = SqlAlchemyBackend(settings.database_url) if settings.database_url else InMemoryBackend()

    store = DecisionStore(backend)
    brain_selector = BrainSelector(registry)
    invoker = AgentInvoker(registry, settings.agent_timeout, settings.stream_timeout)
    analyzer = StrategyAnalyzer(
        registry,
        brain_selector,
        store,
        context_window=settings.analysis_window,
        invoker=invoker
    )
    executor = CollaborationExecutor(
        invoker,
        brain_selector,
        store,
        prompt_builder=SystemPromptBuilder(reference_loader=store.render_user_profile, ttl=settings.context_ttl),
        tool_bridge=ToolBridge(tool_executor),
        context_window=settings.context_window
    )
    return Orchestrator(registry, store, analyzer, executor, web_searcher)
