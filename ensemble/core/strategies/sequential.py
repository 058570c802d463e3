"""
Sequential pipeline strategy.
"""

from contextlib import aclosing
from typing import AsyncIterator

from ensemble.config.prompts import SEQUENTIAL_STAGE_NOTE
from ensemble.models.orchestration_models import CollaborationMode, StreamEvent
from ..base_strategy import BaseStrategy, ExecutionRun, TextBuffer


class SequentialStrategy(BaseStrategy):
    """
    Agents run strictly in order.

    The first stage receives the user message; every later stage receives the
    previous stage's output verbatim as its user turn. Any stage failure ends
    the turn.
    """

    mode = CollaborationMode.SEQUENTIAL

    def __init__(self):
        super().__init__("sequential", "Staged pipeline passing each output to the next agent")

    async def run(self, run: ExecutionRun) -> AsyncIterator[StreamEvent]:
        agents = run.strategy.recommended_agents
        total = len(agents)
        yield run.metadata_event(agents)

        current = run.request.message
        steps = []
        for index, agent in enumerate(agents):
            yield StreamEvent.step_start(index + 1, total, agent)

            system_prompt = run.system_prompt
            if index > 0:
                system_prompt += SEQUENTIAL_STAGE_NOTE.format(
                    step=index + 1,
                    total=total,
                    question=run.request.message
                )

            buffer = TextBuffer()
            async with aclosing(run.generate(agent, run.messages(current, system_prompt=system_prompt), buffer)) as events:
                async for event in events:
                    yield event

            current = buffer.text
            steps.append({"agent": agent, "result": current})

        run.finish(current, [step["agent"] for step in steps], steps=steps)
