"""
Two-round debate strategy with a Brain ruling.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterator, List

from ensemble.config.prompts import (
    DEBATE_OPENING_TEMPLATE,
    DEBATE_REBUTTAL_TEMPLATE,
    DEBATE_RULING_TEMPLATE
)
from ensemble.models.orchestration_models import AgentResponse, CollaborationMode, StreamEvent
from ..base_strategy import BaseStrategy, ExecutionRun, TextBuffer
from ..errors import AllAgentsFailed


logger = logging.getLogger(__name__)


DEBATE_ROUNDS = 2
MAX_DEBATE_AGENTS = 3


def format_opinions(opinions: List[AgentResponse]) -> str:
    return "\n\n".join(f"[{o.agent}]: {o.content}" for o in opinions)


class DebateStrategy(BaseStrategy):
    """
    Up to three agents debate over exactly two rounds.

    Round 0 opinions are independent. Round 1 starts only after every round-0
    call settled, and each agent sees all round-0 opinions. Agents within a
    round run concurrently and their failures are isolated.
    """

    mode = CollaborationMode.DEBATE

    def __init__(self):
        super().__init__("debate", "Two debate rounds followed by a Brain ruling")

    def _round_prompt(self, run: ExecutionRun, round_index: int, rounds: List[List[AgentResponse]]) -> str:
        topic = run.request.message
        if round_index == 0:
            return DEBATE_OPENING_TEMPLATE.format(topic=topic)
        return DEBATE_REBUTTAL_TEMPLATE.format(opinions=format_opinions(rounds[round_index - 1]), topic=topic)

    async def run(self, run: ExecutionRun) -> AsyncIterator[StreamEvent]:
        agents = run.strategy.recommended_agents[:MAX_DEBATE_AGENTS]
        yield run.metadata_event(agents)

        rounds: List[List[AgentResponse]] = []
        failures = []
        for round_index in range(DEBATE_ROUNDS):
            yield StreamEvent.debate_round(round_index + 1)

            prompt = self._round_prompt(run, round_index, rounds)
            results = await run.call_many([
                (agent, run.messages(prompt, with_history=False)) for agent in agents
            ])

            opinions = []
            for result in results:
                if not isinstance(result, AgentResponse):
                    failures.append(result)
                    continue
                result.round = round_index
                opinions.append(result)
                yield StreamEvent.debate_opinion_start(result.agent)
                yield StreamEvent.agent_response(result.agent, result.content)

            if not opinions:
                if round_index == 0:
                    raise AllAgentsFailed(self.mode.value, failures)
                # Keep the opening round for the rebuttal-less ruling
                logger.warning("No agent produced a rebuttal, ruling on the opening round only")
                opinions = rounds[-1]
            rounds.append(opinions)

        yield StreamEvent.synthesis_start()
        brain = await run.select_brain()
        transcript = "\n".join(
            f"\n=== Round {index + 1} ===\n" + "\n\n".join(f"[{o.agent}]\n{o.content}" for o in opinions)
            for index, opinions in enumerate(rounds)
        )
        prompt = DEBATE_RULING_TEMPLATE.format(topic=run.request.message, rounds=transcript)

        buffer = TextBuffer()
        async with aclosing(run.generate(brain.name, run.messages(prompt, with_history=False), buffer)) as events:
            async for event in events:
                yield event

        participants = list(dict.fromkeys(o.agent for opinions in rounds for o in opinions))
        run.finish(
            buffer.text,
            participants,
            judge=brain.name,
            rounds=[
                [{"agent": o.agent, "opinion": o.content} for o in opinions]
                for opinions in rounds
            ],
            failed_agents=[f.agent for f in failures]
        )
