"""
Unit tests for strategy parsing.
"""

import pytest

from ensemble.core.errors import StrategyParseFailure
from ensemble.core.strategy_parser import (
    StrategyParser,
    default_strategy,
    extract_first_json_object,
    extract_sections,
    iter_json_object_candidates
)
from ensemble.models.orchestration_models import Category, CollaborationMode, Complexity
from .fakes import strategy_reply


class TestJsonObjectScan:
    """Test extraction of embedded JSON objects."""

    def test_object_surrounded_by_prose(self):
        """Test that prose around the object is ignored."""
        text = 'I think this is simple. {"collaborationMode": "single"} Hope that helps!'
        assert extract_first_json_object(text) == '{"collaborationMode": "single"}'

    def test_braces_inside_string_values(self):
        """Test that a closing brace inside a string does not end the object."""
        text = 'Result: {"a": "x } y"} and later {"b": 1}'

        assert extract_first_json_object(text) == '{"a": "x } y"}'
        assert list(iter_json_object_candidates(text)) == ['{"a": "x } y"}', '{"b": 1}']

    def test_escaped_quotes_inside_strings(self):
        text = r'{"a": "say \"}\" now"} tail'
        assert extract_first_json_object(text) == r'{"a": "say \"}\" now"}'

    def test_nested_objects(self):
        text = 'x {"outer": {"inner": {"deep": 1}}, "n": 2} y'
        assert extract_first_json_object(text) == '{"outer": {"inner": {"deep": 1}}, "n": 2}'

    def test_non_json_brace_group_skipped(self):
        """Test that brace groups that do not decode are skipped."""
        text = 'Use {curly} braces, then {"collaborationMode": "voting"}'
        assert extract_first_json_object(text) == '{"collaborationMode": "voting"}'

    def test_quotes_in_prose_do_not_confuse_scan(self):
        text = 'He said "hi" and then {"k": "v"}'
        assert extract_first_json_object(text) == '{"k": "v"}'

    def test_no_object(self):
        assert extract_first_json_object("no braces at all") is None
        assert extract_first_json_object('unbalanced {"a": 1') is None


class TestSections:
    """Test extraction of the narrative sections."""

    def test_thought_and_decision(self):
        text = "[Thought] hmm, simple\n[Decision] go single\n```json\n{}\n```"
        assert extract_sections(text) == ("hmm, simple", "go single")

    def test_missing_sections(self):
        assert extract_sections('{"a": 1}') == ("", "")


class TestStrategyParser:
    """Test StrategyParser class."""

    def setup_method(self):
        self.parser = StrategyParser()

    def test_parse_fenced_reply(self):
        """Test parsing the documented three-section reply."""
        strategy = self.parser.parse(strategy_reply("parallel", ["ChatGPT", "Claude"], category="technical"))

        assert strategy.collaboration_mode == CollaborationMode.PARALLEL
        assert strategy.recommended_agents == ["ChatGPT", "Claude"]
        assert strategy.category == Category.TECHNICAL
        assert strategy.brain_thought == "The user wants help."
        assert strategy.brain_decision == "Use parallel."

    def test_json_fields_win_over_sections(self):
        """Test that sections only fill fields missing from the JSON."""
        text = strategy_reply("single", ["A"], brainThought="from json")
        strategy = self.parser.parse(text)

        assert strategy.brain_thought == "from json"
        assert strategy.brain_decision == "Use single."

    def test_parse_prose_with_bare_object(self):
        """Test the brace scan when no fence is present."""
        text = (
            'Sure. {"collaborationMode": "debate", "recommendedAgents": ["A", "B"], '
            '"complexity": "very_complex", "category": "decision", "reasoning": "use {both}"} Done.'
        )
        strategy = self.parser.parse(text)

        assert strategy.collaboration_mode == CollaborationMode.DEBATE
        assert strategy.complexity == Complexity.VERY_COMPLEX
        assert strategy.reasoning == "use {both}"

    def test_invalid_fence_falls_back_to_scan(self):
        """Test that a broken fenced block does not stop the scan."""
        text = '```json\n{not json}\n```\nActually: {"collaborationMode": "sequential"}'
        strategy = self.parser.parse(text)

        assert strategy.collaboration_mode == CollaborationMode.SEQUENTIAL

    def test_unknown_mode_degrades(self):
        strategy = self.parser.parse('{"collaborationMode": "telepathy", "category": "technical"}')

        assert strategy.collaboration_mode == CollaborationMode.SINGLE
        assert strategy.category == Category.TECHNICAL

    def test_parse_failure(self):
        """Test that a reply without an object raises."""
        with pytest.raises(StrategyParseFailure):
            self.parser.parse("I could not decide.")

        with pytest.raises(StrategyParseFailure):
            self.parser.parse("")

    def test_parse_or_default(self):
        """Test the default strategy substitution."""
        strategy, parsed = self.parser.parse_or_default("nothing useful", "ChatGPT")

        assert parsed is False
        assert strategy.collaboration_mode == CollaborationMode.SINGLE
        assert strategy.complexity == Complexity.MODERATE
        assert strategy.category == Category.CONVERSATION
        assert strategy.recommended_agents == ["ChatGPT"]
        assert strategy.needs_web_search is False

        strategy, parsed = self.parser.parse_or_default(strategy_reply("voting", ["A"]), "ChatGPT")
        assert parsed is True
        assert strategy.collaboration_mode == CollaborationMode.VOTING

    def test_default_strategy_without_agent(self):
        assert default_strategy(None).recommended_agents == []
