"""
API routes for the orchestration service.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ensemble.core.errors import AllProvidersUnavailable
from ensemble.core.orchestrator import Orchestrator, create_orchestrator
from ensemble.models.orchestration_models import ChatTurnRequest


logger = logging.getLogger(__name__)

_orchestrator: Optional[Orchestrator] = None


def get_orchestrator() -> Orchestrator:
    """Return the process-wide orchestrator, creating it on first use."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_orchestrator()
    return _orchestrator


def set_orchestrator(orchestrator: Optional[Orchestrator]):
    global _orchestrator
    _orchestrator = orchestrator


class ChatRequest(BaseModel):
    """Request model for chat interactions."""
    message: str
    user_id: str = "default"
    session_id: str = "default"
    project_context: Optional[str] = None
    search_results: Optional[List[Dict[str, Any]]] = None
    timeout: Optional[float] = None

    def to_turn_request(self) -> ChatTurnRequest:
        return ChatTurnRequest(
            user_id=self.user_id,
            session_id=self.session_id,
            message=self.message,
            search_results=self.search_results,
            project_context=self.project_context,
            timeout=self.timeout
        )


class ChatResponseModel(BaseModel):
    """Response model for buffered chat."""
    content: str
    agentsUsed: List[str]
    mode: str
    metadata: Dict[str, Any] = {}


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str


def health_check() -> HealthResponse:
    """Health check endpoint for the load balancer."""
    return HealthResponse(status="healthy")


async def chat_endpoint(request: ChatRequest) -> ChatResponseModel:
    """
    Endpoint to get a complete orchestrated reply.

    Args:
        request: Chat request containing the user message and session identifiers.

    Returns:
        The collaboration result.

    Raises:
        HTTPException: If no message is provided or if processing fails.
    """
    if not request.message or not request.message.strip():
        raise HTTPException(status_code=400, detail="No message provided")

    try:
        result = await get_orchestrator().process(request.to_turn_request())
    except AllProvidersUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Chat request failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return ChatResponseModel(
        content=result.content,
        agentsUsed=result.agents_used,
        mode=result.mode.value,
        metadata=result.metadata
    )


async def chat_streaming_endpoint(request: ChatRequest) -> StreamingResponse:
    """
    Endpoint to stream orchestration events as newline-delimited JSON.

    Args:
        request: Chat request containing the user message and session identifiers.

    Returns:
        Streaming response; errors after this point arrive as an ``error`` event.

    Raises:
        HTTPException: If no message is provided.
    """
    if not request.message or not request.message.strip():
        raise HTTPException(status_code=400, detail="No message provided")

    return StreamingResponse(
        get_orchestrator().stream_lines(request.to_turn_request()),
        media_type="application/x-ndjson"
    )


def statistics_endpoint() -> Dict[str, Any]:
    """Collect registry, routing and execution statistics."""
    orchestrator = get_orchestrator()
    return {
        "providers": orchestrator.registry.get_registry_statistics(),
        "routing": orchestrator.analyzer.get_routing_statistics(),
        "collaboration": orchestrator.executor.get_execution_statistics(),
        "agents": orchestrator.executor.invoker.get_execution_statistics()
    }
