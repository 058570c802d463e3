"""
Extraction of a Strategy from a free-form Brain reply.
"""

import json
import logging
import re
from typing import Iterator, Optional, Tuple

from ensemble.models.orchestration_models import (
    Category,
    CollaborationMode,
    Complexity,
    Strategy
)
from .errors import StrategyParseFailure


logger = logging.getLogger(__name__)


FENCED_JSON_PATTERN = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)

THOUGHT_PATTERN = re.compile(
    r"\[Thought\](.*?)(?=\[Decision\]|\[Strategy JSON\]|#{2,}|```|\Z)",
    re.DOTALL | re.IGNORECASE
)
DECISION_PATTERN = re.compile(
    r"\[Decision\](.*?)(?=\[Strategy JSON\]|#{2,}|```|\Z)",
    re.DOTALL | re.IGNORECASE
)


def iter_json_object_candidates(text: str) -> Iterator[str]:
    """
    Yield balanced top-level ``{...}`` spans from left to right.

    Uses a brace-depth counter. Inside an object, double-quoted strings are
    tracked with escape awareness so braces within string values are ignored.

    Args:
        text: Text to scan

    Yields:
        Substrings spanning one complete top-level object each
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for index, char in enumerate(text):
        if depth > 0 and in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:index + 1]
                start = -1


def extract_first_json_object(text: str) -> Optional[str]:
    """
    Return the first complete top-level JSON object embedded in text.

    Brace groups that do not decode as a JSON object are skipped.

    Args:
        text: Text possibly surrounded by prose

    Returns:
        The object source text, or None if there is none
    """
    for candidate in iter_json_object_candidates(text):
        try:
            if isinstance(json.loads(candidate), dict):
                return candidate
        except json.JSONDecodeError:
            continue
    return None


def extract_fenced_json(text: str) -> Optional[str]:
    """Return the body of the first ```json fenced block, if any."""
    match = FENCED_JSON_PATTERN.search(text)
    return match.group(1) if match else None


def extract_sections(text: str) -> Tuple[str, str]:
    """
    Extract the narrative thought and decision sections.

    Returns:
        Tuple of (thought, decision); missing sections are empty strings
    """
    thought_match = THOUGHT_PATTERN.search(text)
    decision_match = DECISION_PATTERN.search(text)
    thought = thought_match.group(1).strip() if thought_match else ""
    decision = decision_match.group(1).strip() if decision_match else ""
    return thought, decision


def default_strategy(default_agent: Optional[str]) -> Strategy:
    """Strategy used when nothing parseable was returned."""
    return Strategy(
        complexity=Complexity.MODERATE,
        category=Category.CONVERSATION,
        needs_web_search=False,
        collaboration_mode=CollaborationMode.SINGLE,
        recommended_agents=[default_agent] if default_agent else [],
        reasoning="Default strategy due to parsing error"
    )


class StrategyParser:
    """
    Pure parser turning a Brain reply into a Strategy.

    A fenced ```json block wins when it decodes; otherwise the first complete
    top-level object found by the brace scan is used.
    """

    def parse(self, text: str) -> Strategy:
        """
        Parse a strategy from a Brain reply.

        Args:
            text: Raw Brain reply

        Returns:
            Parsed Strategy with narrative sections merged in

        Raises:
            StrategyParseFailure: If no JSON object can be decoded
        """
        if not text:
            raise StrategyParseFailure("Empty Brain reply")

        data = None
        fenced = extract_fenced_json(text)
        if fenced is not None:
            try:
                data = json.loads(fenced)
            except json.JSONDecodeError as e:
                logger.warning(f"Fenced strategy block is not valid JSON, scanning for objects: {e}")

        if not isinstance(data, dict):
            candidate = extract_first_json_object(text)
            if candidate is None:
                raise StrategyParseFailure("No JSON object found in Brain reply")
            data = json.loads(candidate)

        strategy = Strategy.from_dict(data)

        thought, decision = extract_sections(text)
        if not strategy.brain_thought and thought:
            strategy.brain_thought = thought
        if not strategy.brain_decision and decision:
            strategy.brain_decision = decision

        return strategy

    def parse_or_default(self, text: str, default_agent: Optional[str]) -> Tuple[Strategy, bool]:
        """
        Parse a strategy, substituting the default on failure.

        Args:
            text: Raw Brain reply
            default_agent: Agent used by the default strategy

        Returns:
            Tuple of (strategy, parsed) where parsed is False for the default
        """
        try:
            return self.parse(text), True
        except StrategyParseFailure as e:
            logger.warning(f"Using default strategy: {e}. Reply start: {text[:200]!r}")
            return default_strategy(default_agent), False
