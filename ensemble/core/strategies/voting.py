"""
Voting strategy with a Brain verdict.
"""

import re
from collections import Counter
from contextlib import aclosing
from typing import AsyncIterator, Optional

from ensemble.config.prompts import VOTE_PROMPT_TEMPLATE, VOTING_TALLY_TEMPLATE
from ensemble.models.orchestration_models import AgentResponse, CollaborationMode, StreamEvent
from ..base_strategy import BaseStrategy, ExecutionRun, TextBuffer
from ..errors import AllAgentsFailed


CHOICE_PATTERN = re.compile(r"^\s*\**\s*Choice\s*\**\s*:\s*\**\s*(.+?)\s*\**\s*$", re.IGNORECASE | re.MULTILINE)


def extract_choice(content: str) -> Optional[str]:
    """Return the last ``Choice:`` line of a vote, if any."""
    matches = CHOICE_PATTERN.findall(content)
    return matches[-1].strip() if matches else None


class VotingStrategy(BaseStrategy):
    """
    Each agent gives an opinion and a discrete choice.

    The Brain tallies the votes and rules; it may override the majority.
    """

    mode = CollaborationMode.VOTING

    def __init__(self):
        super().__init__("voting", "Opinions with explicit choices, tallied by the Brain")

    async def run(self, run: ExecutionRun) -> AsyncIterator[StreamEvent]:
        agents = run.strategy.recommended_agents
        yield run.metadata_event(agents)

        prompt = VOTE_PROMPT_TEMPLATE.format(question=run.request.message)
        results = await run.call_many([
            (agent, run.messages(prompt, with_history=False)) for agent in agents
        ])

        votes = []
        failures = []
        for result in results:
            if not isinstance(result, AgentResponse):
                failures.append(result)
                continue
            result.choice = extract_choice(result.content)
            votes.append(result)
            yield StreamEvent.agent_response(result.agent, result.content)

        if not votes:
            raise AllAgentsFailed(self.mode.value, failures)

        tally = Counter(v.choice for v in votes if v.choice)

        yield StreamEvent.voting_tally_start()
        brain = await run.select_brain()
        ballot = "\n\n".join(f"[{v.agent}]\n{v.content}" for v in votes)
        if tally:
            ballot += "\n\nRaw tally: " + ", ".join(f"{choice}: {count}" for choice, count in tally.most_common())
        prompt = VOTING_TALLY_TEMPLATE.format(question=run.request.message, votes=ballot)

        buffer = TextBuffer()
        async with aclosing(run.generate(brain.name, run.messages(prompt, with_history=False), buffer)) as events:
            async for event in events:
                yield event

        run.finish(
            buffer.text,
            [v.agent for v in votes],
            judge=brain.name,
            votes=[{"agent": v.agent, "choice": v.choice, "response": v.content} for v in votes],
            tally=dict(tally),
            failed_agents=[f.agent for f in failures]
        )
