"""
API package for the orchestration service.
"""

from .routes import (
    health_check,
    chat_endpoint,
    chat_streaming_endpoint,
    statistics_endpoint,
    get_orchestrator,
    set_orchestrator,
    ChatRequest,
    ChatResponseModel,
    HealthResponse
)

__all__ = [
    'health_check',
    'chat_endpoint',
    'chat_streaming_endpoint',
    'statistics_endpoint',
    'get_orchestrator',
    'set_orchestrator',
    'ChatRequest',
    'ChatResponseModel',
    'HealthResponse'
]
