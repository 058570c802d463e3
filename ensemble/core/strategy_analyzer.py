"""
Strategy analyzer for routing requests across providers.

This module provides the StrategyAnalyzer class that asks the Brain how a
request should be handled, parses the answer into a Strategy, re-optimizes
the agent list against provider capabilities and logs the decision.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ensemble.config.prompts import (
    LEARNING_CONTEXT_TEMPLATE,
    LEARNING_EXAMPLE_TEMPLATE,
    NO_PATTERNS_TEXT,
    NO_SIMILAR_DECISIONS_TEXT,
    STRATEGY_PROMPT_TEMPLATE
)
from ensemble.models.orchestration_models import (
    ChatMessage,
    ChatOptions,
    CollaborationMode,
    LongTermMemory,
    MessageRole,
    ModePattern,
    SimilarDecision,
    Strategy
)
from .agent_selection import optimize_agent_selection
from .brain_selector import BrainSelector
from .decision_store import STRATEGY_DECISION_TYPE, DecisionStore
from .errors import AgentFailure
from .execution_manager import AgentInvoker
from .provider_registry import ProviderRegistry
from .strategy_parser import StrategyParser


logger = logging.getLogger(__name__)


MAX_ROUTING_HISTORY = 1000


class StrategyAnalyzer:
    """
    Brain-driven router for chat turns.

    Every call to ``analyze`` makes exactly one non-streaming Brain call and
    writes exactly one decision log entry.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        brain_selector: BrainSelector,
        store: DecisionStore,
        parser: Optional[StrategyParser] = None,
        context_window: int = 5,
        similar_limit: int = 5,
        pattern_limit: int = 10,
        max_tokens: int = 1500,
        invoker: Optional[AgentInvoker] = None
    ):
        """
        Initialize the strategy analyzer.

        Args:
            registry: Registry of available providers
            brain_selector: Selector for the coordinating provider
            store: Decision store for context and learning data
            parser: Strategy parser
            context_window: Number of recent turns shown to the Brain
            similar_limit: Maximum number of similar past decisions
            pattern_limit: Entries considered per mode pattern
            max_tokens: Token budget of the routing call
            invoker: Agent invoker used for the Brain call
        """
        self.registry = registry
        self.brain_selector = brain_selector
        self.store = store
        self.parser = parser or StrategyParser()
        self.context_window = context_window
        self.similar_limit = similar_limit
        self.pattern_limit = pattern_limit
        self.max_tokens = max_tokens
        self.invoker = invoker or AgentInvoker(registry)

        self._routing_history: List[Dict[str, Any]] = []

    async def analyze(
        self,
        user_id: str,
        session_id: str,
        message: str,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Strategy:
        """
        Decide how a request is handled.

        Args:
            user_id: Requesting user
            session_id: Conversation session
            message: User message
            timeout: Budget in seconds for the Brain call
            cancel_event: Caller cancellation signal

        Returns:
            Strategy with 1..4 available recommended agents

        Raises:
            AllProvidersUnavailable: If no Brain can be selected
            AgentFailure: If the Brain call fails or times out
            OperationCancelled: If the caller cancelled
        """
        brain = await self.brain_selector.select_brain(cancel_event)

        context = await self.store.get_context_window(session_id, self.context_window)
        long_term = await self.store.search_long_term_memory(user_id, message[:50])
        similar = await self.store.find_similar_decisions(user_id, message, self.similar_limit)
        patterns = {
            mode: await self.store.analyze_mode_patterns(user_id, mode, self.pattern_limit)
            for mode in CollaborationMode
        }

        prompt = self.build_strategy_prompt(
            context,
            long_term,
            self.build_learning_context(similar),
            patterns
        )

        try:
            response = await self.invoker.call(
                brain.name,
                [ChatMessage(MessageRole.SYSTEM, prompt), ChatMessage(MessageRole.USER, message)],
                ChatOptions(max_tokens=self.max_tokens),
                timeout=timeout,
                cancel_event=cancel_event,
                mode="routing"
            )
        except AgentFailure as failure:
            logger.error(f"Brain {brain.name} failed during strategy analysis: {failure.reason}")
            raise

        available = self.registry.available_names()
        default_agent = available[0] if available else brain.name
        strategy, parsed = self.parser.parse_or_default(response.content, default_agent)
        strategy.recommended_agents = optimize_agent_selection(strategy, self.registry)

        logger.info(f"Strategy decided - Mode: {strategy.collaboration_mode.value}, "
                    f"Agents: {strategy.recommended_agents}, "
                    f"Complexity: {strategy.complexity.value}, "
                    f"Category: {strategy.category.value}, "
                    f"Learning-based: {len(similar) > 0}")

        process = self._build_decision_process(brain.name, response.content, strategy, similar, patterns)
        await self.store.log_decision(
            user_id,
            session_id,
            STRATEGY_DECISION_TYPE,
            message,
            process,
            json.dumps(strategy.to_dict(), ensure_ascii=False),
            [brain.name]
        )

        self._record_routing_decision(message, brain.name, strategy, parsed)
        return strategy

    def build_learning_context(self, similar: List[SimilarDecision]) -> str:
        """Render up to three similar past decisions as examples."""
        if not similar:
            return NO_SIMILAR_DECISIONS_TEXT

        examples = "\n\n".join(
            LEARNING_EXAMPLE_TEMPLATE.format(
                number=index + 1,
                question=(decision.question or "")[:100],
                mode=decision.mode or "unknown",
                agents=", ".join(decision.agents),
                category=decision.category or "unknown",
                complexity=decision.complexity or "unknown",
                reasoning=decision.reasoning or "N/A"
            )
            for index, decision in enumerate(similar[:3])
        )
        return LEARNING_CONTEXT_TEMPLATE.format(examples=examples)

    def build_strategy_prompt(
        self,
        context: List[ChatMessage],
        long_term: List[LongTermMemory],
        learning_context: str,
        patterns: Dict[CollaborationMode, ModePattern]
    ) -> str:
        """
        Build the routing prompt for the Brain.

        Args:
            context: Recent conversation, oldest first
            long_term: Matching long-term memories
            learning_context: Rendered similar-decision examples
            patterns: Usage pattern per collaboration mode

        Returns:
            The system prompt of the routing call
        """
        capabilities = "\n".join(
            f"- {name}: strengths ({', '.join(caps['strengths'])}), "
            f"specialties ({', '.join(caps['specialties'])}), "
            f"best for ({', '.join(caps['bestFor'])})"
            for name, caps in self.registry.capability_table().items()
        )

        pattern_lines = "\n".join(
            f"- {mode.value} mode: used {pattern.total_usage} times, "
            f"frequent models ({', '.join(pattern.top_agents())})"
            for mode, pattern in patterns.items()
            if pattern.total_usage > 0
        )

        long_term_text = ", ".join(m.title for m in long_term[:2]) if long_term else "none"
        recent = " / ".join(f"{m.role.value}: {m.content[:50]}..." for m in context[-2:]) if context else "new conversation"

        return STRATEGY_PROMPT_TEMPLATE.format(
            capabilities=capabilities,
            mode_patterns=pattern_lines or NO_PATTERNS_TEXT,
            learning_context=learning_context,
            long_term=long_term_text,
            recent_context=recent,
            agent_names=", ".join(f'"{name}"' for name in self.registry.available_names())
        )

    def _build_decision_process(
        self,
        brain_name: str,
        full_analysis: str,
        strategy: Strategy,
        similar: List[SimilarDecision],
        patterns: Dict[CollaborationMode, ModePattern]
    ) -> Dict[str, Any]:
        """Structured trace stored with the decision log entry."""
        return {
            "thought": strategy.brain_thought,
            "decision": strategy.brain_decision,
            "agentInstructions": strategy.agent_instructions,
            "fullAnalysis": full_analysis,
            "strategy": strategy.to_dict(),
            "learningContext": {
                "similarDecisionCount": len(similar),
                "referencedDecisions": [
                    {"question": (d.question or "")[:50], "mode": d.mode, "similarity": d.similarity}
                    for d in similar[:3]
                ]
            },
            "modePatterns": [
                {"mode": mode.value, "usageCount": pattern.total_usage, "topAgents": pattern.top_agents()}
                for mode, pattern in patterns.items()
                if pattern.total_usage > 0
            ],
            "brain": brain_name,
            "timestamp": datetime.now().isoformat()
        }

    def _record_routing_decision(self, message: str, brain_name: str, strategy: Strategy, parsed: bool):
        """Record routing decision for analysis."""
        self._routing_history.append({
            "timestamp": datetime.now(),
            "request_message": message[:100],
            "brain": brain_name,
            "mode": strategy.collaboration_mode.value,
            "category": strategy.category.value,
            "complexity": strategy.complexity.value,
            "agents": list(strategy.recommended_agents),
            "parsed": parsed
        })

        # Keep only last 1000 routing decisions
        if len(self._routing_history) > MAX_ROUTING_HISTORY:
            self._routing_history = self._routing_history[-MAX_ROUTING_HISTORY:]

    def get_routing_statistics(self) -> Dict[str, Any]:
        """
        Get routing statistics.

        Returns:
            Dictionary containing routing statistics
        """
        total = len(self._routing_history)
        if total == 0:
            return {"total_requests": 0}

        mode_counts = {}
        category_counts = {}
        brain_counts = {}
        for record in self._routing_history:
            mode_counts[record["mode"]] = mode_counts.get(record["mode"], 0) + 1
            category_counts[record["category"]] = category_counts.get(record["category"], 0) + 1
            brain_counts[record["brain"]] = brain_counts.get(record["brain"], 0) + 1

        return {
            "total_requests": total,
            "mode_distribution": mode_counts,
            "category_distribution": category_counts,
            "brain_usage": brain_counts,
            "parse_failures": sum(1 for r in self._routing_history if not r["parsed"])
        }

    def clear_routing_history(self):
        self._routing_history.clear()
        logger.info("Cleared routing history")
