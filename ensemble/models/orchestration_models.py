"""
Core data models for the collaboration orchestration engine.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any


logger = logging.getLogger(__name__)


class Complexity(str, Enum):
    """Enumeration of request complexity levels."""
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    VERY_COMPLEX = "very_complex"


class Category(str, Enum):
    """Enumeration of request categories."""
    CONVERSATION = "conversation"
    TECHNICAL = "technical"
    CREATIVE = "creative"
    RESEARCH = "research"
    DECISION = "decision"


class CollaborationMode(str, Enum):
    """Enumeration of collaboration modes."""
    SINGLE = "single"
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"
    DEBATE = "debate"
    VOTING = "voting"


class StreamEventType(str, Enum):
    """Enumeration of streaming wire event types."""
    METADATA = "metadata"
    CHUNK = "chunk"
    AGENT_RESPONSE = "agent_response"
    STEP_START = "step_start"
    DEBATE_ROUND = "debate_round"
    DEBATE_OPINION_START = "debate_opinion_start"
    VOTING_TALLY_START = "voting_tally_start"
    SYNTHESIS_START = "synthesis_start"
    DONE = "done"
    ERROR = "error"


class MessageRole(str, Enum):
    """Enumeration of conversation roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


MAX_RECOMMENDED_AGENTS = 4


@dataclass
class ProviderProfile:
    """Capability profile of a provider."""
    strengths: List[str] = field(default_factory=list)
    specialties: List[str] = field(default_factory=list)
    best_for: List[str] = field(default_factory=list)
    deep_reasoning: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strengths": list(self.strengths),
            "specialties": list(self.specialties),
            "bestFor": list(self.best_for),
            "deepReasoning": self.deep_reasoning,
        }


@dataclass
class ChatMessage:
    """A single conversation turn."""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class ChatOptions:
    """Per-call generation options passed to providers."""
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None


@dataclass
class ChatResponse:
    """Buffered reply from a provider."""
    content: str
    model: str = ""
    provider_name: str = ""
    usage: Dict[str, Any] = field(default_factory=dict)


def _coerce_enum(enum_cls, value, default, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except (ValueError, AttributeError):
        if value is not None:
            logger.warning(f"Unknown {field_name} value {value!r}, using {default.value}")
        return default


_TRUE_STRINGS = {"true", "yes", "y", "1", "on"}
_FALSE_STRINGS = {"false", "no", "n", "0", "off", ""}


def _coerce_bool(value, default: bool, field_name: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    logger.warning(f"Unknown {field_name} value {value!r}, using {default}")
    return default


@dataclass
class Strategy:
    """
    Routing decision for a single turn.

    Created by the strategy analyzer, consumed once by the collaboration
    executor. Field names on the wire are camelCase.
    """
    complexity: Complexity = Complexity.MODERATE
    category: Category = Category.CONVERSATION
    needs_web_search: bool = False
    collaboration_mode: CollaborationMode = CollaborationMode.SINGLE
    recommended_agents: List[str] = field(default_factory=list)
    reasoning: str = ""
    brain_thought: str = ""
    brain_decision: str = ""
    agent_instructions: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Strategy":
        """
        Build a strategy from a decoded JSON object.

        Unknown enum values degrade field by field to their defaults and
        agent names are deduplicated preserving order.

        Args:
            data: Decoded JSON object using camelCase keys

        Returns:
            Strategy instance
        """
        agents = data.get("recommendedAgents") or []
        if isinstance(agents, str):
            agents = [agents]
        names = [str(agent).strip() for agent in agents if str(agent).strip()]

        return cls(
            complexity=_coerce_enum(Complexity, data.get("complexity"), Complexity.MODERATE, "complexity"),
            category=_coerce_enum(Category, data.get("category"), Category.CONVERSATION, "category"),
            needs_web_search=_coerce_bool(data.get("needsWebSearch"), False, "needsWebSearch"),
            collaboration_mode=_coerce_enum(
                CollaborationMode,
                data.get("collaborationMode"),
                CollaborationMode.SINGLE,
                "collaborationMode"
            ),
            recommended_agents=list(dict.fromkeys(names)),
            reasoning=str(data.get("reasoning") or ""),
            brain_thought=str(data.get("brainThought") or ""),
            brain_decision=str(data.get("brainDecision") or ""),
            agent_instructions=str(data.get("agentInstructions") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complexity": self.complexity.value,
            "category": self.category.value,
            "needsWebSearch": self.needs_web_search,
            "collaborationMode": self.collaboration_mode.value,
            "recommendedAgents": list(self.recommended_agents),
            "reasoning": self.reasoning,
            "brainThought": self.brain_thought,
            "brainDecision": self.brain_decision,
            "agentInstructions": self.agent_instructions,
        }


@dataclass
class DecisionLogEntry:
    """Append-only record of one routing decision."""
    user_id: str
    session_id: str
    decision_type: str
    input: str
    process: Dict[str, Any] = field(default_factory=dict)
    output: str = ""
    providers_used: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class MemoryRecord:
    """A stored short-term or long-term memory row."""
    user_id: str
    session_id: Optional[str]
    role: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class LongTermMemory:
    """A durable user fact or note."""
    user_id: str
    category: str
    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    importance: int = 5
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "importance": self.importance,
        }


@dataclass
class SimilarDecision:
    """A past decision matched by input-token overlap."""
    question: str
    mode: str
    agents: List[str]
    category: str
    complexity: str
    reasoning: str
    similarity: float
    timestamp: Optional[datetime] = None


@dataclass
class ModePattern:
    """Usage statistics of one collaboration mode."""
    mode: CollaborationMode
    total_usage: int = 0
    agent_frequency: Dict[str, int] = field(default_factory=dict)
    category_frequency: Dict[str, int] = field(default_factory=dict)
    recent_examples: List[Dict[str, Any]] = field(default_factory=list)

    def top_agents(self, limit: int = 3) -> List[str]:
        ranked = sorted(self.agent_frequency.items(), key=lambda item: item[1], reverse=True)
        return [name for name, _ in ranked[:limit]]


@dataclass
class AgentResponse:
    """Result of one agent contribution inside a collaboration."""
    agent: str
    content: str = ""
    success: bool = True
    error_message: Optional[str] = None
    round: Optional[int] = None
    choice: Optional[str] = None
    execution_time: Optional[float] = None


@dataclass
class CollaborationResult:
    """Buffered result of a collaboration."""
    content: str
    agents_used: List[str]
    mode: CollaborationMode
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCallResult:
    """Outcome of one tool invocation."""
    tool: str
    success: bool
    output: Any = None
    error: Optional[str] = None


@dataclass
class ToolRunReport:
    """Outcome of processing the tool calls embedded in a reply."""
    has_tool_calls: bool = False
    results: List[ToolCallResult] = field(default_factory=list)


@dataclass
class StreamEvent:
    """
    One event of the streaming wire protocol.

    Serialized as a single compact JSON object per line with a ``type``
    discriminator plus the event payload.
    """
    type: StreamEventType
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def metadata(cls, mode: CollaborationMode, agents_used: List[str], search_results_present: bool) -> "StreamEvent":
        return cls(StreamEventType.METADATA, {
            "mode": mode.value,
            "agentsUsed": list(agents_used),
            "searchResultsPresent": search_results_present,
        })

    @classmethod
    def chunk(cls, content: str) -> "StreamEvent":
        return cls(StreamEventType.CHUNK, {"content": content})

    @classmethod
    def agent_response(cls, agent: str, content: str) -> "StreamEvent":
        return cls(StreamEventType.AGENT_RESPONSE, {"agent": agent, "content": content})

    @classmethod
    def step_start(cls, step: int, total: int, agent: str) -> "StreamEvent":
        return cls(StreamEventType.STEP_START, {"step": step, "total": total, "agent": agent})

    @classmethod
    def debate_round(cls, round_number: int) -> "StreamEvent":
        return cls(StreamEventType.DEBATE_ROUND, {"round": round_number})

    @classmethod
    def debate_opinion_start(cls, agent: str) -> "StreamEvent":
        return cls(StreamEventType.DEBATE_OPINION_START, {"agent": agent})

    @classmethod
    def voting_tally_start(cls) -> "StreamEvent":
        return cls(StreamEventType.VOTING_TALLY_START)

    @classmethod
    def synthesis_start(cls) -> "StreamEvent":
        return cls(StreamEventType.SYNTHESIS_START)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(StreamEventType.DONE)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(StreamEventType.ERROR, {"message": message})

    @property
    def is_terminal(self) -> bool:
        return self.type in (StreamEventType.DONE, StreamEventType.ERROR)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"type": self.type.value}
        payload.update(self.data)
        return payload

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str) + "\n"


@dataclass
class ChatTurnRequest:
    """
    Request context for one orchestrated turn.

    Carries the per-call timeout budget and an optional cancellation signal
    down to every provider call.
    """
    user_id: str
    session_id: str
    message: str
    search_results: Optional[List[Dict[str, Any]]] = None
    project_context: Optional[str] = None
    timeout: Optional[float] = None
    cancel_event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()
