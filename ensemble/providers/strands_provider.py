"""
Provider adapter running Bedrock models through the strands agent SDK.
"""

import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import boto3
from strands import Agent
from strands.models import BedrockModel

from ensemble.models.orchestration_models import (
    ChatMessage,
    ChatOptions,
    ChatResponse,
    ProviderProfile
)
from .base import Provider, split_system_prompt


logger = logging.getLogger(__name__)


def create_bedrock_model(
    model_id: str,
    region_name: str = "us-east-1",
    temperature: float = 0.7,
    max_tokens: int = 4096
) -> BedrockModel:
    """
    Create a configured BedrockModel.

    Args:
        model_id: Bedrock model identifier
        region_name: AWS region of the Bedrock runtime
        temperature: Sampling temperature
        max_tokens: Maximum tokens per reply

    Returns:
        Configured BedrockModel instance.
    """
    session = boto3.Session(region_name=region_name)

    return BedrockModel(
        model_id=model_id,
        boto_session=session,
        temperature=temperature,
        max_tokens=max_tokens,
        streaming=True
    )


def to_agent_messages(turns: List[ChatMessage]) -> List[Dict[str, Any]]:
    """Convert conversation turns into the SDK's content-block message format."""
    return [
        {"role": turn.role.value, "content": [{"text": turn.content}]}
        for turn in turns
    ]


class StrandsProvider(Provider):
    """
    Provider backed by a strands Agent over a Bedrock model.

    A fresh Agent is built per call so conversation state never leaks
    between turns or users.
    """

    chunk_format = "strands_event"

    def __init__(
        self,
        name: str,
        model_id: str,
        profile: Optional[ProviderProfile] = None,
        region_name: str = "us-east-1",
        model_factory: Callable[..., Any] = create_bedrock_model,
        session: Optional[boto3.Session] = None
    ):
        super().__init__(name, profile)
        self.model_id = model_id
        self.region_name = region_name
        self._model_factory = model_factory
        self._session = session

    def has_credentials(self) -> bool:
        if self._session is None:
            self._session = boto3.Session(region_name=self.region_name)
        return self._session.get_credentials() is not None

    def _build_agent(self, messages: List[ChatMessage], options: Optional[ChatOptions]):
        options = options or ChatOptions()
        model_kwargs = {"region_name": self.region_name}
        if options.temperature is not None:
            model_kwargs["temperature"] = options.temperature
        if options.max_tokens:
            model_kwargs["max_tokens"] = options.max_tokens

        system_prompt, turns = split_system_prompt(messages)
        if not turns:
            raise ValueError("At least one user message is required")

        # The SDK takes history up front and the latest user turn as the prompt
        history, prompt = turns[:-1], turns[-1].content
        agent = Agent(
            model=self._model_factory(self.model_id, **model_kwargs),
            system_prompt=system_prompt or None,
            messages=to_agent_messages(history),
            callback_handler=None
        )
        return agent, prompt

    async def chat(self, messages: List[ChatMessage], options: Optional[ChatOptions] = None) -> ChatResponse:
        agent, prompt = self._build_agent(messages, options)
        result = await agent.invoke_async(prompt)
        return ChatResponse(
            content=str(result).strip(),
            model=self.model_id,
            provider_name=self.name,
        )

    async def stream_chat(self, messages: List[ChatMessage], options: Optional[ChatOptions] = None) -> AsyncIterator[Any]:
        agent, prompt = self._build_agent(messages, options)
        async for event in agent.stream_async(prompt):
            yield event
