"""
Decision log and conversation memory.

This module provides the DecisionStore which records every routing decision,
keeps short-term conversation turns, searches long-term memory and mines the
decision log for similar past questions and per-mode usage patterns.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ensemble.models.orchestration_models import (
    ChatMessage,
    CollaborationMode,
    DecisionLogEntry,
    LongTermMemory,
    MemoryRecord,
    MessageRole,
    ModePattern,
    SimilarDecision
)
from .persistence import MemoryBackend


logger = logging.getLogger(__name__)


STRATEGY_DECISION_TYPE = "strategy_analysis"
SIMILARITY_THRESHOLD = 0.2


def keyword_similarity(query: str, candidate: str) -> float:
    """
    Token-overlap similarity between two texts.

    A query keyword counts as common when any candidate keyword contains it
    or is contained in it. The count is divided by the longer keyword list.

    Args:
        query: Incoming question
        candidate: Past question

    Returns:
        Similarity in [0, 1]
    """
    query_keywords = query.lower().split()
    input_keywords = candidate.lower().split()
    if not query_keywords or not input_keywords:
        return 0.0

    common = [
        kw for kw in query_keywords
        if any(ikw in kw or kw in ikw for ikw in input_keywords)
    ]
    return len(common) / max(len(query_keywords), len(input_keywords))


class DecisionStore:
    """
    Logical store over a persistence backend.

    Context windows are returned oldest first. Similar-decision and mode
    queries only consider entries of the strategy decision type.
    """

    def __init__(self, backend: MemoryBackend, clock: Callable[[], datetime] = datetime.now):
        """
        Initialize the decision store.

        Args:
            backend: Persistence backend
            clock: Timestamp source for new entries
        """
        self.backend = backend
        self._clock = clock

    async def log_decision(
        self,
        user_id: str,
        session_id: str,
        decision_type: str,
        input: str,
        process: Dict[str, Any],
        output: str,
        providers_used: List[str]
    ) -> DecisionLogEntry:
        """
        Append one entry to the decision log.

        Returns:
            The stored entry
        """
        entry = DecisionLogEntry(
            user_id=user_id,
            session_id=session_id,
            decision_type=decision_type,
            input=input,
            process=process,
            output=output,
            providers_used=list(providers_used),
            timestamp=self._clock()
        )
        await self.backend.add_decision(entry)
        logger.debug(f"Logged {decision_type} decision for session {session_id}")
        return entry

    async def get_decision_log(self, user_id: str, decision_type: Optional[str] = None, limit: int = 50) -> List[DecisionLogEntry]:
        return await self.backend.recent_decisions(user_id, decision_type, limit)

    async def add_turn(
        self,
        user_id: str,
        session_id: str,
        role: MessageRole,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """Append a user or assistant turn to short-term memory."""
        await self.backend.add_short_term(MemoryRecord(
            user_id=user_id,
            session_id=session_id,
            role=role.value,
            content=content,
            metadata=metadata or {},
            timestamp=self._clock()
        ))

    async def get_context_window(self, session_id: str, size: int = 10) -> List[ChatMessage]:
        """
        Return the most recent turns of a session.

        Args:
            session_id: Session to read
            size: Maximum number of turns

        Returns:
            Up to ``size`` messages ordered oldest first
        """
        if size <= 0:
            return []
        rows = await self.backend.recent_short_term(session_id, size)
        messages = []
        for row in reversed(rows):
            role = MessageRole.USER if row.role == MessageRole.USER.value else MessageRole.ASSISTANT
            messages.append(ChatMessage(role, row.content))
        return messages

    async def clear_session(self, session_id: str) -> int:
        return await self.backend.clear_short_term(session_id)

    async def add_long_term_memory(
        self,
        user_id: str,
        category: str,
        title: str,
        content: str,
        tags: Optional[List[str]] = None,
        importance: int = 5
    ) -> LongTermMemory:
        memory = LongTermMemory(
            user_id=user_id,
            category=category,
            title=title,
            content=content,
            tags=list(tags or []),
            importance=importance,
            updated_at=self._clock()
        )
        await self.backend.add_long_term(memory)
        return memory

    async def search_long_term_memory(self, user_id: str, term: str) -> List[LongTermMemory]:
        if not term.strip():
            return []
        return await self.backend.search_long_term(user_id, term)

    async def render_user_profile(self, user_id: str, limit: int = 10) -> str:
        """Render the user's most important long-term memories as prompt lines."""
        memories = await self.backend.search_long_term(user_id, "")
        return "\n".join(f"- {m.title}: {m.content}" for m in memories[:limit])

    async def _strategy_entries(self, user_id: str, limit: int) -> List[DecisionLogEntry]:
        entries = await self.backend.recent_decisions(user_id, STRATEGY_DECISION_TYPE, limit)
        return [e for e in entries if isinstance(e.process, dict) and isinstance(e.process.get("strategy"), dict)]

    async def find_similar_decisions(self, user_id: str, query: str, limit: int = 5) -> List[SimilarDecision]:
        """
        Rank recent strategy decisions by input-token overlap with the query.

        Scans the ``limit * 5`` most recent entries, drops anything at or
        below the similarity threshold and returns the best ``limit``.

        Args:
            user_id: Owner of the decision log
            query: Incoming question
            limit: Maximum number of matches

        Returns:
            Matches sorted by descending similarity
        """
        entries = await self._strategy_entries(user_id, limit * 5)

        scored = []
        for entry in entries:
            similarity = keyword_similarity(query, entry.input or "")
            if similarity <= SIMILARITY_THRESHOLD:
                continue
            strategy = entry.process["strategy"]
            scored.append(SimilarDecision(
                question=entry.input,
                mode=strategy.get("collaborationMode", CollaborationMode.SINGLE.value),
                agents=list(strategy.get("recommendedAgents") or []),
                category=strategy.get("category", ""),
                complexity=strategy.get("complexity", ""),
                reasoning=strategy.get("reasoning", ""),
                similarity=similarity,
                timestamp=entry.timestamp
            ))

        scored.sort(key=lambda match: match.similarity, reverse=True)
        return scored[:limit]

    async def analyze_mode_patterns(self, user_id: str, mode: CollaborationMode, limit: int = 10) -> ModePattern:
        """
        Summarize how a collaboration mode has been used.

        Args:
            user_id: Owner of the decision log
            mode: Collaboration mode to analyze
            limit: Maximum number of matching entries considered

        Returns:
            ModePattern with usage count and agent/category frequencies
        """
        entries = await self._strategy_entries(user_id, limit * 3)
        matching = [
            e for e in entries
            if e.process["strategy"].get("collaborationMode") == mode.value
        ][:limit]

        pattern = ModePattern(mode=mode, total_usage=len(matching))
        for entry in matching:
            strategy = entry.process["strategy"]
            for agent in strategy.get("recommendedAgents") or []:
                pattern.agent_frequency[agent] = pattern.agent_frequency.get(agent, 0) + 1
            category = strategy.get("category") or "unknown"
            pattern.category_frequency[category] = pattern.category_frequency.get(category, 0) + 1

        pattern.recent_examples = [
            {"input": entry.input, "strategy": entry.process["strategy"]}
            for entry in matching[:5]
        ]
        return pattern
