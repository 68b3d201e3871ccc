"""Agent package exports."""

from .base import Agent, AgentContext, AgentResponse
from .orchestrator import Orchestrator
from .router import AgentRouter

__all__ = ["Agent", "AgentContext", "AgentResponse", "AgentRouter", "Orchestrator"]
