"""
Error taxonomy for the orchestration engine.
"""

from typing import List, Optional


class OrchestrationError(Exception):
    """Base class for all orchestration errors."""


class AllProvidersUnavailable(OrchestrationError):
    """No provider was both available and healthy."""

    def __init__(self, message: str = "No AI providers are available", tried: Optional[List[str]] = None):
        super().__init__(message)
        self.tried = tried or []


class StrategyParseFailure(OrchestrationError):
    """The Brain reply did not contain a parseable strategy object."""


class AgentFailure(OrchestrationError):
    """A single agent call failed."""

    def __init__(self, agent: str, message: str):
        super().__init__(f"{agent}: {message}")
        self.agent = agent
        self.reason = message


class StreamTimeout(AgentFailure):
    """An agent stream or call exceeded its time budget."""


class AllAgentsFailed(OrchestrationError):
    """Every agent attempted by a collaboration mode failed."""

    def __init__(self, mode: str, failures: Optional[List[AgentFailure]] = None):
        self.mode = mode
        self.failures = failures or []
        details = "; ".join(str(failure) for failure in self.failures)
        message = f"All agents failed in {mode} mode"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


class ToolExecutionFailure(OrchestrationError):
    """The external tool subsystem failed while processing a reply."""


class OperationCancelled(OrchestrationError):
    """The caller cancelled the operation."""
