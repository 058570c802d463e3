"""
Main FastAPI application for the orchestration service.
"""

import logging
import os

import uvicorn
from fastapi import FastAPI

from ensemble.api import (
    health_check,
    chat_endpoint,
    chat_streaming_endpoint,
    statistics_endpoint,
    ChatRequest,
    ChatResponseModel,
    HealthResponse
)

# Create FastAPI application
app = FastAPI(
    title="Ensemble API",
    description="Routes each chat turn across several LLM providers and combines their answers",
    version="1.0.0"
)

# Health check endpoint
@app.get('/health', response_model=HealthResponse)
def health():
    """Health check endpoint for the load balancer."""
    return health_check()

# Chat endpoints
@app.post('/chat', response_model=ChatResponseModel)
async def chat(request: ChatRequest):
    """Endpoint to get orchestrated chat responses."""
    return await chat_endpoint(request)

@app.post('/chat-streaming')
async def chat_streaming(request: ChatRequest):
    """Endpoint to stream orchestration events as they are generated."""
    return await chat_streaming_endpoint(request)

@app.get('/statistics')
def statistics():
    """Routing and execution statistics."""
    return statistics_endpoint()

if __name__ == '__main__':
    logging.basicConfig(level=os.environ.get('LOG_LEVEL', 'INFO'))
    # Get port from environment variable or default to 8000
    port = int(os.environ.get('PORT', 8000))
    uvicorn.run(app, host='0.0.0.0', port=port)
