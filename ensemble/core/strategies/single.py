"""
Single-agent strategy with ordered fallback.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterator

from ensemble.models.orchestration_models import CollaborationMode, StreamEvent
from ..base_strategy import BaseStrategy, ExecutionRun, TextBuffer
from ..errors import AgentFailure, AllAgentsFailed, StreamTimeout


logger = logging.getLogger(__name__)


class SingleStrategy(BaseStrategy):
    """
    One agent answers; on failure the next recommended agent is tried.

    A failure after text has already been streamed, or a timeout, ends the
    turn instead of falling back.
    """

    mode = CollaborationMode.SINGLE

    def __init__(self):
        super().__init__("single", "One agent answers, with fallback through the recommended list")

    async def run(self, run: ExecutionRun) -> AsyncIterator[StreamEvent]:
        agents = run.strategy.recommended_agents
        yield run.metadata_event(agents)

        messages = run.messages(run.request.message)
        tried = set()
        failures = []

        for agent in agents:
            if agent in tried:
                continue
            tried.add(agent)

            buffer = TextBuffer()
            try:
                async with aclosing(run.generate(agent, messages, buffer)) as events:
                    async for event in events:
                        yield event
            except StreamTimeout:
                raise
            except AgentFailure as failure:
                if buffer:
                    raise
                failures.append(failure)
                logger.warning(f"Single mode agent {agent} failed, trying next: {failure.reason}")
                continue

            content = buffer.text
            for block in await run.tool_bridge.run(content):
                content += block
                yield StreamEvent.chunk(block)

            run.finish(content, [agent], fallbacks=[f.agent for f in failures])
            return

        raise AllAgentsFailed(self.mode.value, failures)
