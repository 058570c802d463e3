"""
Base classes for collaboration strategies and their per-turn execution state.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union

from ensemble.models.orchestration_models import (
    AgentResponse,
    ChatMessage,
    ChatOptions,
    ChatTurnRequest,
    CollaborationMode,
    CollaborationResult,
    MessageRole,
    StreamEvent,
    Strategy
)
from .brain_selector import BrainSelector
from .errors import AgentFailure
from .execution_manager import AgentCall, AgentInvoker
from .tool_bridge import ToolBridge


logger = logging.getLogger(__name__)


class TextBuffer:
    """Accumulates the text produced by one generation."""

    def __init__(self):
        self._parts: List[str] = []

    def append(self, text: str):
        self._parts.append(text)

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __bool__(self) -> bool:
        return any(self._parts)


class ExecutionRun:
    """
    Per-turn state shared by a collaboration algorithm.

    The same algorithm drives both output channels: in streaming runs
    ``generate`` yields chunk events from the provider stream, in buffered
    runs it performs a single chat call and yields nothing.
    """

    def __init__(
        self,
        request: ChatTurnRequest,
        strategy: Strategy,
        system_prompt: str,
        history: List[ChatMessage],
        invoker: AgentInvoker,
        brain_selector: BrainSelector,
        tool_bridge: Optional[ToolBridge] = None,
        streaming: bool = False
    ):
        self.request = request
        self.strategy = strategy
        self.system_prompt = system_prompt
        self.history = history
        self.invoker = invoker
        self.brain_selector = brain_selector
        self.tool_bridge = tool_bridge or ToolBridge()
        self.streaming = streaming

        self.content = ""
        self.agents_used: List[str] = []
        self.metadata: Dict[str, Any] = {}
        self.completed = False

    @property
    def mode(self) -> CollaborationMode:
        return self.strategy.collaboration_mode

    @property
    def search_results_present(self) -> bool:
        return bool(self.request.search_results)

    def metadata_event(self, agents: List[str]) -> StreamEvent:
        return StreamEvent.metadata(self.mode, agents, self.search_results_present)

    def messages(self, user_content: str, system_prompt: Optional[str] = None, with_history: bool = True) -> List[ChatMessage]:
        """Build a conversation: system prompt, optional history, then the user turn."""
        messages = [ChatMessage(MessageRole.SYSTEM, system_prompt or self.system_prompt)]
        if with_history:
            messages.extend(self.history)
        messages.append(ChatMessage(MessageRole.USER, user_content))
        return messages

    async def generate(
        self,
        agent: str,
        messages: List[ChatMessage],
        buffer: TextBuffer,
        options: Optional[ChatOptions] = None
    ) -> AsyncIterator[StreamEvent]:
        """
        Generate one reply into ``buffer``.

        Yields:
            Chunk events in streaming runs; nothing in buffered runs
        """
        if self.streaming:
            deltas = self.invoker.stream(
                agent,
                messages,
                options,
                timeout=self.request.timeout,
                cancel_event=self.request.cancel_event,
                mode=self.mode.value
            )
            async with aclosing(deltas):
                async for delta in deltas:
                    buffer.append(delta)
                    yield StreamEvent.chunk(delta)
        else:
            response = await self.invoker.call(
                agent,
                messages,
                options,
                timeout=self.request.timeout,
                cancel_event=self.request.cancel_event,
                mode=self.mode.value
            )
            buffer.append(response.content)

    async def call_many(self, calls: Sequence[AgentCall]) -> List[Union[AgentResponse, AgentFailure]]:
        """Buffered fan-out that waits for every call to settle."""
        return await self.invoker.call_many(
            calls,
            timeout=self.request.timeout,
            cancel_event=self.request.cancel_event,
            mode=self.mode.value
        )

    async def select_brain(self):
        return await self.brain_selector.select_brain(self.request.cancel_event)

    def finish(self, content: str, agents_used: List[str], **metadata):
        self.content = content
        self.agents_used = list(agents_used)
        self.metadata.update(metadata)
        self.completed = True

    def to_result(self) -> CollaborationResult:
        return CollaborationResult(
            content=self.content,
            agents_used=list(self.agents_used),
            mode=self.mode,
            metadata=dict(self.metadata)
        )


class BaseStrategy(ABC):
    """
    Abstract base class for collaboration algorithms.

    Each subclass implements one mode exactly once as an async generator of
    stream events; buffered execution drains the same generator.
    """

    mode: CollaborationMode

    def __init__(self, name: str, description: str = ""):
        """
        Initialize the strategy.

        Args:
            name: Name of the strategy
            description: Optional description of the strategy
        """
        self.name = name
        self.description = description
        self.execution_count = 0
        self.success_count = 0

    @abstractmethod
    def run(self, run: ExecutionRun) -> AsyncIterator[StreamEvent]:
        """
        Execute the algorithm.

        The first event is always the metadata event, emitted before any
        agent is called. The algorithm ends by calling ``run.finish``.

        Args:
            run: Per-turn execution state

        Returns:
            Async iterator of non-terminal stream events
        """

    def validate_strategy(self, strategy: Strategy) -> bool:
        """
        Validate that the strategy can be executed by this implementation.

        Args:
            strategy: The strategy to validate

        Returns:
            True if valid, False otherwise
        """
        return strategy.collaboration_mode == self.mode and len(strategy.recommended_agents) > 0

    def get_performance_metrics(self) -> Dict[str, Any]:
        """
        Get performance metrics for this strategy.

        Returns:
            Dictionary containing performance metrics
        """
        success_rate = (self.success_count / self.execution_count) if self.execution_count > 0 else 0.0
        return {
            "name": self.name,
            "execution_count": self.execution_count,
            "success_count": self.success_count,
            "success_rate": success_rate
        }

    def _record_execution(self, success: bool):
        """Record execution statistics."""
        self.execution_count += 1
        if success:
            self.success_count += 1
