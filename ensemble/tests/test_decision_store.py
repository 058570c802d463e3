"""
Unit tests for the decision store.
"""

from datetime import datetime, timedelta

import pytest

from ensemble.core.decision_store import (
    SIMILARITY_THRESHOLD,
    STRATEGY_DECISION_TYPE,
    DecisionStore,
    keyword_similarity
)
from ensemble.core.persistence import InMemoryBackend
from ensemble.models.orchestration_models import CollaborationMode, MessageRole


class SteppingClock:
    """Clock advancing one second per call."""

    def __init__(self):
        self.now = datetime(2024, 1, 1)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


def strategy_process(mode, agents, category="technical", complexity="moderate"):
    return {
        "strategy": {
            "collaborationMode": mode,
            "recommendedAgents": agents,
            "category": category,
            "complexity": complexity,
            "reasoning": f"{mode} reasoning"
        }
    }


class TestKeywordSimilarity:
    """Test keyword_similarity."""

    def test_identical(self):
        assert keyword_similarity("sort a list", "sort a list") == 1.0

    def test_disjoint(self):
        assert keyword_similarity("weather tomorrow", "compile rust") == 0.0

    def test_substring_matches_and_longer_denominator(self):
        """Test that containment in either direction counts as common."""
        # "lists" contains "list"; "sorting" contains "sort"
        assert keyword_similarity("sort list", "sorting lists in python") == pytest.approx(2 / 4)

    def test_empty_inputs(self):
        assert keyword_similarity("", "anything") == 0.0
        assert keyword_similarity("anything", "") == 0.0


class TestDecisionStore:
    """Test DecisionStore class."""

    def setup_method(self):
        self.clock = SteppingClock()
        self.store = DecisionStore(InMemoryBackend(), clock=self.clock)

    async def _log_strategy(self, question, mode, agents, category="technical", user_id="u1"):
        return await self.store.log_decision(
            user_id,
            "s1",
            STRATEGY_DECISION_TYPE,
            question,
            strategy_process(mode, agents, category),
            "{}",
            ["Brain"]
        )

    @pytest.mark.asyncio
    async def test_log_decision(self):
        """Test that entries are appended with the store clock."""
        entry = await self._log_strategy("how to sort", "single", ["A"])

        assert entry.timestamp == datetime(2024, 1, 1, 0, 0, 1)
        log = await self.store.get_decision_log("u1")
        assert len(log) == 1
        assert log[0].decision_type == STRATEGY_DECISION_TYPE
        assert log[0].providers_used == ["Brain"]

    @pytest.mark.asyncio
    async def test_context_window_oldest_first(self):
        """Test that the window holds the most recent turns in chronological order."""
        for index in range(6):
            role = MessageRole.USER if index % 2 == 0 else MessageRole.ASSISTANT
            await self.store.add_turn("u1", "s1", role, f"turn {index}")

        window = await self.store.get_context_window("s1", 4)

        assert [m.content for m in window] == ["turn 2", "turn 3", "turn 4", "turn 5"]
        assert [m.role for m in window] == [
            MessageRole.USER, MessageRole.ASSISTANT, MessageRole.USER, MessageRole.ASSISTANT
        ]

    @pytest.mark.asyncio
    async def test_context_window_edge_sizes(self):
        await self.store.add_turn("u1", "s1", MessageRole.USER, "only")

        assert await self.store.get_context_window("s1", 0) == []
        assert await self.store.get_context_window("empty", 5) == []
        assert [m.content for m in await self.store.get_context_window("s1", 10)] == ["only"]

    @pytest.mark.asyncio
    async def test_clear_session(self):
        await self.store.add_turn("u1", "s1", MessageRole.USER, "a")
        assert await self.store.clear_session("s1") == 1
        assert await self.store.get_context_window("s1") == []

    @pytest.mark.asyncio
    async def test_long_term_memory(self):
        """Test long-term search and profile rendering."""
        await self.store.add_long_term_memory("u1", "preference", "Language", "Prefers Python", ["coding"], importance=8)
        await self.store.add_long_term_memory("u1", "fact", "City", "Lives in Lisbon", importance=3)

        assert [m.title for m in await self.store.search_long_term_memory("u1", "python")] == ["Language"]
        assert await self.store.search_long_term_memory("u1", "   ") == []
        assert await self.store.render_user_profile("u1") == "- Language: Prefers Python\n- City: Lives in Lisbon"

    @pytest.mark.asyncio
    async def test_find_similar_decisions(self):
        """Test ranking, threshold and type filtering."""
        await self._log_strategy("how do I sort a python list", "single", ["A"])
        await self._log_strategy("weather in paris", "single", ["B"])
        await self._log_strategy("sort python list quickly", "parallel", ["A", "B"])
        await self.store.log_decision("u1", "s1", "other_type", "sort python list", {}, "", [])

        matches = await self.store.find_similar_decisions("u1", "sort python list")

        assert [m.question for m in matches] == ["sort python list quickly", "how do I sort a python list"]
        assert matches[0].mode == "parallel"
        assert matches[0].agents == ["A", "B"]
        assert matches[0].similarity == pytest.approx(3 / 4)
        assert all(m.similarity > SIMILARITY_THRESHOLD for m in matches)

    @pytest.mark.asyncio
    async def test_find_similar_decisions_limit(self):
        for index in range(4):
            await self._log_strategy(f"deploy service {index}", "single", ["A"])

        matches = await self.store.find_similar_decisions("u1", "deploy service", limit=2)
        assert len(matches) == 2

    @pytest.mark.asyncio
    async def test_find_similar_ignores_other_users(self):
        await self._log_strategy("sort python list", "single", ["A"], user_id="u2")
        assert await self.store.find_similar_decisions("u1", "sort python list") == []

    @pytest.mark.asyncio
    async def test_analyze_mode_patterns(self):
        """Test usage counts and frequencies per mode."""
        await self._log_strategy("q1", "parallel", ["A", "B"], category="technical")
        await self._log_strategy("q2", "parallel", ["A", "C"], category="research")
        await self._log_strategy("q3", "single", ["B"], category="technical")
        await self._log_strategy("q4", "parallel", ["A"], category="technical")

        pattern = await self.store.analyze_mode_patterns("u1", CollaborationMode.PARALLEL)

        assert pattern.mode == CollaborationMode.PARALLEL
        assert pattern.total_usage == 3
        assert pattern.agent_frequency == {"A": 3, "B": 1, "C": 1}
        assert pattern.category_frequency == {"technical": 2, "research": 1}
        assert pattern.top_agents(1) == ["A"]
        assert [e["input"] for e in pattern.recent_examples] == ["q4", "q2", "q1"]

    @pytest.mark.asyncio
    async def test_analyze_unused_mode(self):
        await self._log_strategy("q1", "single", ["A"])

        pattern = await self.store.analyze_mode_patterns("u1", CollaborationMode.VOTING)

        assert pattern.total_usage == 0
        assert pattern.agent_frequency == {}
        assert pattern.recent_examples == []
