"""Agent base class and the types exchanged with the execution loop."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Mapping

from ..errors import AgentExecutionError
from ..llm.client import ModelClient, ToolStep
from ..tasks.base import (
    AgentContext,
    AgentKind,
    AgentResponse,
    Artifact,
    NextAction,
    SubTask,
)
from ..tools.base import Tool

logger = logging.getLogger(__name__)

__all__ = ["Agent", "AgentContext", "AgentResponse", "NextAction", "previous_context"]


class Agent:
    """A specialised executor wrapping its own prompt, model call and tool set."""

    kind: AgentKind
    label = "Task"
    closing = "Complete the task and report the results."
    system_prompt = ""

    def __init__(
        self,
        name: str,
        description: str,
        client: ModelClient,
        tools: Mapping[str, Tool],
        *,
        max_steps: int = 10,
        temperature: float = 0.3,
    ) -> None:
        self.name = name
        self.description = description
        self.client = client
        self.tools = dict(tools)
        self.max_steps = max_steps
        self.temperature = temperature

    async def execute(self, sub_task: SubTask, context: AgentContext) -> AgentResponse:
        try:
            return await asyncio.to_thread(self.run, sub_task, context)
        except AgentExecutionError:
            raise
        except Exception as exc:
            logger.warning("%s failed on %s: %s", self.name, sub_task.id, exc)
            raise AgentExecutionError(self.name, str(exc)) from exc

    def run(self, sub_task: SubTask, context: AgentContext) -> AgentResponse:
        generation = self.client.generate_text(
            self.system_prompt,
            self.build_prompt(sub_task, context),
            tools=self.tools,
            max_steps=self.max_steps,
            temperature=self.temperature,
            task_id=context.task_id,
        )
        return AgentResponse(
            message=generation.text,
            artifacts=self.collect_artifacts(generation.tool_steps, sub_task),
            thinking=generation.reasoning,
            tool_calls=[step.as_dict() for step in generation.tool_steps],
        )

    def build_prompt(self, sub_task: SubTask, context: AgentContext) -> str:
        parts = [f"{self.label}: {sub_task.title}", f"Description: {sub_task.description}"]
        previous = previous_context(context)
        if previous:
            parts.append(f"Context:\n{previous}")
        if context.history:
            conversation = "\n".join(f"{item.role}: {item.content}" for item in context.history)
            parts.append(f"Conversation:\n{conversation}")
        parts.append(self.closing)
        return "\n\n".join(parts)

    def collect_artifacts(self, steps: List[ToolStep], sub_task: SubTask) -> List[Artifact]:
        """Turn tool steps into artifacts; agents without artifact tools return none."""

        return []


def previous_context(context: AgentContext) -> str:
    return "\n\n".join(
        f"Previous: {sub_task_id}\n{result}"
        for sub_task_id, result in context.previous_results.items()
    )
