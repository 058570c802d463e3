"""
Dispatch of a strategy to exactly one collaboration algorithm.
"""

import logging
from contextlib import aclosing
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from ensemble.config.prompts import AGENT_INSTRUCTIONS_TEMPLATE
from ensemble.models.orchestration_models import (
    ChatTurnRequest,
    CollaborationMode,
    CollaborationResult,
    MessageRole,
    StreamEvent,
    Strategy
)
from .base_strategy import BaseStrategy, ExecutionRun
from .brain_selector import BrainSelector
from .decision_store import DecisionStore
from .execution_manager import AgentInvoker
from .prompt_builder import SystemPromptBuilder
from .strategies import default_strategies
from .tool_bridge import ToolBridge


logger = logging.getLogger(__name__)


MAX_EXECUTION_HISTORY = 1000


class CollaborationExecutor:
    """
    Runs a Strategy in buffered or streaming form.

    Both forms drive the same registered algorithm; buffered execution simply
    discards the intermediate events.
    """

    def __init__(
        self,
        invoker: AgentInvoker,
        brain_selector: BrainSelector,
        store: DecisionStore,
        prompt_builder: Optional[SystemPromptBuilder] = None,
        tool_bridge: Optional[ToolBridge] = None,
        context_window: int = 10,
        strategies: Optional[List[BaseStrategy]] = None
    ):
        """
        Initialize the collaboration executor.

        Args:
            invoker: Agent invoker used for every provider call
            brain_selector: Selector used for synthesis and rulings
            store: Decision store supplying the conversation window
            prompt_builder: System prompt builder
            tool_bridge: Bridge to the tool subsystem
            context_window: Number of past turns sent to agents
            strategies: Algorithms to register; defaults to all five modes
        """
        self.invoker = invoker
        self.brain_selector = brain_selector
        self.store = store
        self.prompt_builder = prompt_builder or SystemPromptBuilder()
        self.tool_bridge = tool_bridge or ToolBridge()
        self.context_window = context_window
        self._strategies: Dict[CollaborationMode, BaseStrategy] = {}
        self._execution_history: List[Dict[str, Any]] = []

        for strategy in strategies if strategies is not None else default_strategies():
            self.register_strategy(strategy)

    def register_strategy(self, strategy: BaseStrategy):
        """
        Register the algorithm for a mode, replacing any previous one.

        Args:
            strategy: The strategy implementation to register
        """
        self._strategies[strategy.mode] = strategy

    def get_strategy(self, mode: CollaborationMode) -> Optional[BaseStrategy]:
        return self._strategies.get(mode)

    def list_strategies(self) -> List[str]:
        return [mode.value for mode in self._strategies]

    def _resolve(self, strategy: Strategy) -> BaseStrategy:
        impl = self.get_strategy(strategy.collaboration_mode)
        if impl is None:
            raise ValueError(f"Strategy '{strategy.collaboration_mode.value}' is not registered")
        if not impl.validate_strategy(strategy):
            raise ValueError(f"Invalid strategy configuration for '{strategy.collaboration_mode.value}'")
        return impl

    async def prepare(self, request: ChatTurnRequest, strategy: Strategy, streaming: bool) -> ExecutionRun:
        """
        Build the per-turn execution state.

        Args:
            request: Turn request
            strategy: Strategy to execute
            streaming: Whether chunks are streamed

        Returns:
            ExecutionRun ready to be driven by an algorithm
        """
        system_prompt = await self.prompt_builder.build(
            request.user_id,
            request.project_context,
            request.search_results
        )
        if strategy.agent_instructions:
            system_prompt += AGENT_INSTRUCTIONS_TEMPLATE.format(instructions=strategy.agent_instructions)

        history = await self.store.get_context_window(request.session_id, self.context_window)
        # The current user turn may already be stored; it is sent separately
        if history and history[-1].role == MessageRole.USER and history[-1].content == request.message:
            history = history[:-1]

        return ExecutionRun(
            request=request,
            strategy=strategy,
            system_prompt=system_prompt,
            history=history,
            invoker=self.invoker,
            brain_selector=self.brain_selector,
            tool_bridge=self.tool_bridge,
            streaming=streaming
        )

    async def execute(self, request: ChatTurnRequest, strategy: Strategy) -> CollaborationResult:
        """
        Execute a strategy and return the buffered result.

        Raises:
            ValueError: If the mode is not registered or the strategy is invalid
            OrchestrationError: If the algorithm fails
        """
        impl = self._resolve(strategy)
        run = await self.prepare(request, strategy, streaming=False)
        async with aclosing(self._drive(impl, run)) as events:
            async for _ in events:
                pass
        return run.to_result()

    async def execute_stream(
        self,
        request: ChatTurnRequest,
        strategy: Strategy,
        run: Optional[ExecutionRun] = None
    ) -> AsyncIterator[StreamEvent]:
        """
        Execute a strategy as a stream of events ending with ``done``.

        Args:
            request: Turn request
            strategy: Strategy to execute
            run: Optional prepared streaming run; lets the caller read the
                assembled content after the stream ends

        Yields:
            Stream events; errors propagate to the caller
        """
        impl = self._resolve(strategy)
        if run is None:
            run = await self.prepare(request, strategy, streaming=True)
        async with aclosing(self._drive(impl, run)) as events:
            async for event in events:
                yield event
        yield StreamEvent.done()

    async def _drive(self, impl: BaseStrategy, run: ExecutionRun) -> AsyncIterator[StreamEvent]:
        logger.info(f"Executing {impl.name} mode with agents: {run.strategy.recommended_agents}")
        started = datetime.now()
        try:
            async with aclosing(impl.run(run)) as events:
                async for event in events:
                    yield event
        except Exception as e:
            impl._record_execution(False)
            self._record_execution_history(run, started, e)
            logger.error(f"{impl.name} mode failed: {e}")
            raise

        impl._record_execution(True)
        self._record_execution_history(run, started, None)

    def _record_execution_history(self, run: ExecutionRun, started: datetime, error: Optional[Exception]):
        """Record execution in history for analysis."""
        self._execution_history.append({
            "timestamp": datetime.now(),
            "request_message": run.request.message[:100],
            "mode": run.mode.value,
            "agents_used": list(run.agents_used or run.strategy.recommended_agents),
            "status": "failed" if error else "completed",
            "execution_time": (datetime.now() - started).total_seconds(),
            "streaming": run.streaming,
            "error": str(error) if error else None
        })

        # Keep only last 1000 executions
        if len(self._execution_history) > MAX_EXECUTION_HISTORY:
            self._execution_history = self._execution_history[-MAX_EXECUTION_HISTORY:]

    def get_execution_statistics(self) -> Dict[str, Any]:
        """
        Get overall execution statistics.

        Returns:
            Dictionary containing execution statistics
        """
        total_executions = len(self._execution_history)
        if total_executions == 0:
            return {"total_executions": 0}

        successful_executions = sum(1 for h in self._execution_history if h["status"] == "completed")

        strategy_stats = {}
        for mode, strategy in self._strategies.items():
            strategy_stats[mode.value] = strategy.get_performance_metrics()

        return {
            "total_executions": total_executions,
            "successful_executions": successful_executions,
            "success_rate": successful_executions / total_executions,
            "strategy_statistics": strategy_stats
        }
