"""
Core data models for the orchestration engine.
"""

from .orchestration_models import (
    AgentResponse,
    Category,
    ChatMessage,
    ChatOptions,
    ChatResponse,
    ChatTurnRequest,
    CollaborationMode,
    CollaborationResult,
    Complexity,
    DecisionLogEntry,
    LongTermMemory,
    MessageRole,
    ModePattern,
    ProviderProfile,
    SimilarDecision,
    Strategy,
    StreamEvent,
    StreamEventType,
    ToolCallResult,
    ToolRunReport
)

__all__ = [
    'AgentResponse',
    'Category',
    'ChatMessage',
    'ChatOptions',
    'ChatResponse',
    'ChatTurnRequest',
    'CollaborationMode',
    'CollaborationResult',
    'Complexity',
    'DecisionLogEntry',
    'LongTermMemory',
    'MessageRole',
    'ModePattern',
    'ProviderProfile',
    'SimilarDecision',
    'Strategy',
    'StreamEvent',
    'StreamEventType',
    'ToolCallResult',
    'ToolRunReport'
]
