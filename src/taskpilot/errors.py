"""Error taxonomy for the orchestrator."""

from __future__ import annotations

DEPENDENCIES_NOT_MET = "Dependencies not met"
TIMED_OUT = "Timed out"
CANCELLED = "Cancelled"


class TaskpilotError(RuntimeError):
    """Base class for errors raised by taskpilot."""


class ProviderError(TaskpilotError):
    """Raised when a language model provider call fails."""


class StructuredOutputError(TaskpilotError):
    """Raised when a structured model response cannot be parsed or validated."""


class DecompositionError(TaskpilotError):
    """Raised when a task cannot be decomposed into sub-tasks."""


class AgentExecutionError(TaskpilotError):
    """Raised when an agent fails while working on a sub-task."""

    def __init__(self, agent_name: str, message: str) -> None:
        super().__init__(message)
        self.agent_name = agent_name


class UnknownAgentError(TaskpilotError):
    """Raised when a sub-task names an agent with no registered executor."""

    def __init__(self, agent: str) -> None:
        super().__init__(f"Unknown agent type: {agent}")
        self.agent = agent


class AggregationError(TaskpilotError):
    """Raised when the final synthesis call fails."""


class TaskCancelledError(TaskpilotError):
    """Raised when a run is cancelled between sub-task steps."""
