"""High-level orchestration: decompose, schedule, execute and aggregate a task."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Type

from ..config import AgentSpec, ProjectConfig, instantiate_from_path
from ..errors import AggregationError, DecompositionError
from ..llm.client import ModelClient
from ..llm.provider import LLMProvider
from ..tasks.aggregator import Aggregator
from ..tasks.base import AgentKind, SubTask, Task, TaskStatus
from ..tasks.decomposer import Decomposer
from ..tasks.runner import ProgressSink, TaskRunner
from ..tools.builtin import register_builtin_tools
from ..tools.registry import ToolRegistry
from .base import Agent
from .code import CodeAgent
from .multimodal import MultimodalAgent
from .presentation import PresentationAgent
from .research import ResearchAgent
from .router import AgentRouter

logger = logging.getLogger(__name__)

AGENT_CLASSES: Dict[AgentKind, Type[Agent]] = {
    AgentKind.CODE: CodeAgent,
    AgentKind.RESEARCH: ResearchAgent,
    AgentKind.PRESENTATION: PresentationAgent,
    AgentKind.MULTIMODAL: MultimodalAgent,
}

AGENT_NAMES = {
    AgentKind.CODE: "Code Agent",
    AgentKind.RESEARCH: "Research Agent",
    AgentKind.PRESENTATION: "Presentation Agent",
    AgentKind.MULTIMODAL: "Multimodal Agent",
}


class Orchestrator:
    """Builds agents and tools from config and runs submitted tasks.

    ``provider`` overrides every configured provider with one shared instance.
    """

    def __init__(
        self, project_config: ProjectConfig, provider: Optional[LLMProvider] = None
    ) -> None:
        self.config = project_config
        self._provider_override = provider
        self.tool_registry = ToolRegistry()
        register_builtin_tools(self.tool_registry)
        self.tool_registry.load_specs(self.config.tool_specs)

        settings = self.config.orchestrator
        client = self._client("Task Orchestrator", settings.llm_provider, settings.llm_params)
        self.decomposer = Decomposer(client, temperature=settings.temperature)
        self.aggregator = Aggregator(
            client,
            temperature=settings.aggregation_temperature,
            fallback_on_error=settings.fallback_on_aggregation_error,
        )
        self.agents: Dict[AgentKind, Agent] = self._build_agents()
        self.router = AgentRouter(self.agents)
        self.runner = TaskRunner(self.router, self.aggregator)

    def _client(self, name: str, provider_path: Optional[str], params: Dict) -> ModelClient:
        if self._provider_override is not None:
            return ModelClient(self._provider_override, name=name)
        path, merged = self.config.provider_for(provider_path, params)
        provider: LLMProvider = instantiate_from_path(path, **merged)
        return ModelClient(provider, name=name)

    def _build_agents(self) -> Dict[AgentKind, Agent]:
        return {kind: self._materialize_agent(spec) for kind, spec in self.config.agents.items()}

    def _materialize_agent(self, spec: AgentSpec) -> Agent:
        name = AGENT_NAMES[spec.kind]
        agent = AGENT_CLASSES[spec.kind](
            name=name,
            description=spec.description,
            client=self._client(name, spec.llm_provider, spec.llm_params),
            tools=self.tool_registry.select(spec.tools),
            max_steps=spec.max_steps,
            temperature=spec.temperature,
        )
        if spec.engine == "autogen":
            from .autogen_agent import AutogenAgent

            _, params = self.config.provider_for(spec.llm_provider, spec.llm_params)
            return AutogenAgent(agent, params)
        return agent

    def new_task(self, title: str, description: str, task_id: Optional[str] = None) -> Task:
        task = Task(title=title, description=description)
        if task_id:
            task.id = task_id
        return task

    async def decompose_task(self, task: Task) -> List[SubTask]:
        """Preview the scheduled sub-tasks without executing them."""

        return await self.decomposer.decompose(task)

    async def execute_task(
        self,
        task: Task,
        on_progress: Optional[ProgressSink] = None,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Task:
        task.status = TaskStatus.PLANNING
        task.history.add("user", f"{task.title}\n\n{task.description}")
        try:
            task.sub_tasks = await self.decomposer.decompose(task)
        except DecompositionError as exc:
            self._fail(task, exc)
            raise
        task.touch()
        try:
            return await self.runner.execute(
                task, on_progress, timeout=timeout, cancel_event=cancel_event
            )
        except AggregationError as exc:
            self._fail(task, exc)
            raise

    def _fail(self, task: Task, exc: Exception) -> None:
        task.status = TaskStatus.FAILED
        task.error = str(exc)
        task.touch()
        logger.error("Task %s failed: %s", task.id, exc)
