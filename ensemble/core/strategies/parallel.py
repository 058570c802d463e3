"""
Parallel fan-out strategy with Brain synthesis.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterator

from ensemble.config.prompts import PARALLEL_ROLE_TEMPLATE, SYNTHESIS_PROMPT_TEMPLATE
from ensemble.models.orchestration_models import AgentResponse, CollaborationMode, StreamEvent
from ..base_strategy import BaseStrategy, ExecutionRun, TextBuffer
from ..errors import AllAgentsFailed


logger = logging.getLogger(__name__)


MAX_PARALLEL_AGENTS = 3


class ParallelStrategy(BaseStrategy):
    """Up to three agents answer concurrently; the Brain adjudicates."""

    mode = CollaborationMode.PARALLEL

    def __init__(self):
        super().__init__("parallel", "Concurrent answers synthesized by the Brain")

    def _role_prompt(self, run: ExecutionRun, agent: str) -> str:
        provider = run.invoker.registry.get(agent)
        strengths = provider.profile.strengths[:3] if provider else []
        if not strengths:
            return run.system_prompt
        return run.system_prompt + PARALLEL_ROLE_TEMPLATE.format(strengths=", ".join(strengths))

    async def run(self, run: ExecutionRun) -> AsyncIterator[StreamEvent]:
        agents = run.strategy.recommended_agents[:MAX_PARALLEL_AGENTS]
        yield run.metadata_event(agents)

        calls = [
            (agent, run.messages(run.request.message, system_prompt=self._role_prompt(run, agent)))
            for agent in agents
        ]
        results = await run.call_many(calls)

        responses = [r for r in results if isinstance(r, AgentResponse)]
        failures = [r for r in results if not isinstance(r, AgentResponse)]
        if not responses:
            raise AllAgentsFailed(self.mode.value, failures)

        for response in responses:
            yield StreamEvent.agent_response(response.agent, response.content)

        yield StreamEvent.synthesis_start()
        brain = await run.select_brain()
        prompt = SYNTHESIS_PROMPT_TEMPLATE.format(
            question=run.request.message,
            responses="\n\n".join(f"[{r.agent}'s answer]\n{r.content}" for r in responses)
        )

        buffer = TextBuffer()
        async with aclosing(run.generate(brain.name, run.messages(prompt, with_history=False), buffer)) as events:
            async for event in events:
                yield event

        run.finish(
            buffer.text,
            [r.agent for r in responses],
            synthesizer=brain.name,
            individual_responses=[{"agent": r.agent, "content": r.content} for r in responses],
            failed_agents=[f.agent for f in failures]
        )
