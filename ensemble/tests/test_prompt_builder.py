"""
Unit tests for system prompt assembly and the tool bridge.
"""

import pytest
from unittest.mock import AsyncMock

from ensemble.config.prompts import GENERAL_MODE_NOTE
from ensemble.core.cache import TTLCache
from ensemble.core.prompt_builder import SystemPromptBuilder, format_search_context
from ensemble.core.tool_bridge import ToolBridge, format_tool_result
from ensemble.models.orchestration_models import ToolCallResult, ToolRunReport
from .fakes import FakeToolExecutor


SEARCH_RESULTS = [
    {"title": "Python 3.13 released", "link": "https://example.org/a", "snippet": "New JIT"},
    {"title": "Release notes", "url": "https://example.org/b", "snippet": "Details"},
]


class TestSearchContext:
    """Test format_search_context."""

    def test_numbered_sources(self):
        context = format_search_context(SEARCH_RESULTS)

        assert "[Source 1]\nTitle: Python 3.13 released\nURL: https://example.org/a\nContent: New JIT" in context
        assert "[Source 2]\nTitle: Release notes\nURL: https://example.org/b" in context

    def test_empty(self):
        assert format_search_context(None) == ""
        assert format_search_context([]) == ""


class TestSystemPromptBuilder:
    """Test SystemPromptBuilder class."""

    @pytest.mark.asyncio
    async def test_general_mode(self):
        """Test the prompt without project context."""
        builder = SystemPromptBuilder(persona="PERSONA")
        prompt = await builder.build()

        assert prompt == "PERSONA" + GENERAL_MODE_NOTE

    @pytest.mark.asyncio
    async def test_project_context_first_search_last(self):
        """Test the section order of a full prompt."""
        builder = SystemPromptBuilder(persona="PERSONA")
        prompt = await builder.build(project_context="PROJECT NOTES", search_results=SEARCH_RESULTS)

        assert prompt.index("PROJECT NOTES") < prompt.index("PERSONA") < prompt.index("[Source 1]")
        assert GENERAL_MODE_NOTE not in prompt

    @pytest.mark.asyncio
    async def test_reference_context_included(self):
        loader = AsyncMock(return_value="- Language: Python")
        builder = SystemPromptBuilder(persona="PERSONA", reference_loader=loader)

        prompt = await builder.build(user_id="u1")

        assert "- Language: Python" in prompt
        loader.assert_awaited_once_with("u1")

    @pytest.mark.asyncio
    async def test_reference_context_cached_per_user(self):
        """Test that the loader runs once per user within the TTL."""
        now = [0.0]
        loader = AsyncMock(side_effect=lambda user_id: f"profile of {user_id}")
        builder = SystemPromptBuilder(
            persona="P",
            reference_loader=loader,
            cache=TTLCache(ttl=300, clock=lambda: now[0])
        )

        await builder.build(user_id="u1")
        await builder.build(user_id="u1")
        await builder.build(user_id="u2")
        assert loader.await_count == 2

        now[0] = 301
        assert "profile of u1" in await builder.build(user_id="u1")
        assert loader.await_count == 3

    @pytest.mark.asyncio
    async def test_reference_loader_failure_is_not_fatal(self):
        loader = AsyncMock(side_effect=RuntimeError("db down"))
        builder = SystemPromptBuilder(persona="PERSONA", reference_loader=loader)

        assert await builder.build(user_id="u1") == "PERSONA" + GENERAL_MODE_NOTE

    @pytest.mark.asyncio
    async def test_no_reference_without_user(self):
        loader = AsyncMock(return_value="x")
        builder = SystemPromptBuilder(persona="P", reference_loader=loader)

        await builder.build()
        loader.assert_not_awaited()


class TestToolBridge:
    """Test ToolBridge class."""

    @pytest.mark.asyncio
    async def test_disabled_bridge(self):
        bridge = ToolBridge()
        assert bridge.enabled is False
        assert await bridge.run("anything") == []

    @pytest.mark.asyncio
    async def test_results_rendered_in_order(self):
        """Test one block per tool result."""
        executor = FakeToolExecutor(ToolRunReport(has_tool_calls=True, results=[
            ToolCallResult(tool="calculator", success=True, output={"value": 42}),
            ToolCallResult(tool="calendar", success=False, error="no access"),
        ]))
        bridge = ToolBridge(executor)

        blocks = await bridge.run("compute and schedule")

        assert executor.seen == ["compute and schedule"]
        assert len(blocks) == 2
        assert "**Tool executed: calculator**" in blocks[0]
        assert '"value": 42' in blocks[0]
        assert "**Tool executed: calendar**" in blocks[1]
        assert "Failed: no access" in blocks[1]

    @pytest.mark.asyncio
    async def test_no_tool_calls(self):
        bridge = ToolBridge(FakeToolExecutor(ToolRunReport(has_tool_calls=False)))
        assert await bridge.run("plain answer") == []

    @pytest.mark.asyncio
    async def test_executor_error_becomes_failed_block(self):
        """Test that a tool subsystem failure never aborts the turn."""
        bridge = ToolBridge(FakeToolExecutor(error=RuntimeError("sandbox crashed")))

        blocks = await bridge.run("run the tool")

        assert len(blocks) == 1
        assert "Failed: sandbox crashed" in blocks[0]

    def test_format_tool_result(self):
        block = format_tool_result(ToolCallResult(tool="t", success=False))
        assert "Failed: unknown error" in block
