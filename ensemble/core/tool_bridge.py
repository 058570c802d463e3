"""
Bridge to the external tool-execution subsystem.
"""

import json
import logging
from typing import List, Optional, Protocol

from ensemble.config.prompts import TOOL_FAILURE_TEMPLATE, TOOL_SUCCESS_TEMPLATE
from ensemble.models.orchestration_models import ToolCallResult, ToolRunReport
from .errors import ToolExecutionFailure


logger = logging.getLogger(__name__)


class ToolExecutor(Protocol):
    """Opaque side-effecting service that runs tool calls embedded in a reply."""

    async def process_tool_calls(self, content: str) -> ToolRunReport:
        ...


def format_tool_result(result: ToolCallResult) -> str:
    """Render one tool result as an inline content block."""
    if result.success:
        output = json.dumps(result.output, indent=2, default=str, ensure_ascii=False)
        return TOOL_SUCCESS_TEMPLATE.format(tool=result.tool, output=output)
    return TOOL_FAILURE_TEMPLATE.format(tool=result.tool, error=result.error or "unknown error")


class ToolBridge:
    """
    Runs tool calls after generation and renders their results.

    Failures of the tool subsystem never abort a turn; they become a single
    failed-result block.
    """

    def __init__(self, executor: Optional[ToolExecutor] = None):
        self.executor = executor

    @property
    def enabled(self) -> bool:
        return self.executor is not None

    async def run(self, content: str) -> List[str]:
        """
        Process tool calls found in a finished reply.

        Args:
            content: Full generated reply

        Returns:
            Formatted blocks to append, one per tool result
        """
        if self.executor is None or not content:
            return []

        try:
            report = await self.executor.process_tool_calls(content)
        except Exception as e:
            failure = ToolExecutionFailure(str(e))
            logger.warning(f"Tool execution failed: {failure}")
            return [format_tool_result(ToolCallResult(tool="tool_executor", success=False, error=str(failure)))]

        if not report.has_tool_calls:
            return []

        logger.info(f"Executed {len(report.results)} tool call(s): {[r.tool for r in report.results]}")
        return [format_tool_result(result) for result in report.results]
