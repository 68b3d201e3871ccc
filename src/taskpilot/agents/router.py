"""Dispatch of sub-tasks to the agent registered for their kind."""

from __future__ import annotations

from typing import Dict, Mapping

from ..errors import UnknownAgentError
from ..tasks.base import AgentKind, SubTask
from .base import Agent, AgentContext, AgentResponse


class AgentRouter:
    """Forwards a sub-task to its agent and relays the response or error unchanged."""

    def __init__(self, agents: Mapping[AgentKind, Agent]) -> None:
        self.agents: Dict[AgentKind, Agent] = dict(agents)

    def resolve(self, agent: AgentKind | str) -> Agent:
        try:
            kind = AgentKind.parse(agent)
        except ValueError as exc:
            raise UnknownAgentError(str(agent)) from exc
        try:
            return self.agents[kind]
        except KeyError as exc:
            raise UnknownAgentError(kind.value) from exc

    async def route(self, sub_task: SubTask, context: AgentContext) -> AgentResponse:
        agent = self.resolve(sub_task.assigned_agent)
        return await agent.execute(sub_task, context)
