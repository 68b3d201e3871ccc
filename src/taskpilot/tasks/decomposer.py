"""Decomposition of a task into scheduled sub-tasks via one structured model call."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..errors import DecompositionError
from ..llm.client import ModelClient
from .base import AgentKind, SubTask, Task, TaskStatus
from .scheduler import schedule, unresolved_dependencies

logger = logging.getLogger(__name__)

ORCHESTRATOR_PROMPT = """You are the Task Orchestrator of a multi-agent system. You analyse complex
tasks, decompose them into actionable sub-tasks, assign each sub-task to the
most suitable specialised agent and order the work by its dependencies.

Available agents:

code - full-stack web development: frontends and APIs, authentication,
database schemas and migrations, payment integration, automated testing.

research - web search and information gathering, deep analysis, extracting
data from web pages, charts and visualisations, report writing.

presentation - professional slide decks with flexible layouts, data
visualisation in slides, PPTX export.

multimodal - image analysis and generation, audio transcription and
synthesis, video analysis, OCR and document processing.

Guidelines:
- Break the task into 3-7 sub-tasks.
- Identify the dependencies between sub-tasks, naming them by sub-task title.
- Prioritise foundational work first (priority 1 is most urgent, 5 least).
- Note where sub-tasks could run in parallel.
- Each sub-task must be completable in a single agent session."""


class PlannedSubTask(BaseModel):
    title: str = Field(description="Brief title for the sub-task")
    description: str = Field(description="Detailed description of what needs to be done")
    assignedAgent: AgentKind = Field(description="Which agent should handle this")
    priority: int = Field(ge=1, le=5, description="Priority 1-5, 1 being highest")
    dependencies: List[str] = Field(description="Titles of tasks that must complete first")

    @field_validator("assignedAgent", mode="before")
    @classmethod
    def _accept_aliases(cls, value):
        if isinstance(value, str):
            return AgentKind.parse(value)
        return value


class DecompositionPlan(BaseModel):
    analysis: str = Field(description="Analysis of the task requirements")
    subTasks: List[PlannedSubTask]
    executionPlan: str = Field(description="Step-by-step execution plan")


def build_prompt(task: Task) -> str:
    return (
        "Analyze and decompose this task:\n\n"
        f"Title: {task.title}\n"
        f"Description: {task.description}\n\n"
        "Provide a detailed breakdown of sub-tasks with agent assignments."
    )


def build_sub_tasks(task: Task, plan: DecompositionPlan) -> List[SubTask]:
    """Map planned entries to sub-tasks; ids follow the model's order, not priority."""

    return [
        SubTask(
            id=f"{task.id}-sub-{index}",
            parent_id=task.id,
            title=entry.title,
            description=entry.description,
            assigned_agent=entry.assignedAgent,
            priority=entry.priority,
            dependencies=list(entry.dependencies),
            status=TaskStatus.PENDING,
        )
        for index, entry in enumerate(plan.subTasks, start=1)
    ]


class Decomposer:
    """Turns a task description into a dependency-ordered list of sub-tasks."""

    def __init__(self, client: ModelClient, temperature: float = 0.3) -> None:
        self.client = client
        self.temperature = temperature
        self.last_plan: Optional[DecompositionPlan] = None

    async def decompose(self, task: Task) -> List[SubTask]:
        try:
            plan = await asyncio.to_thread(
                self.client.generate_structured,
                ORCHESTRATOR_PROMPT,
                build_prompt(task),
                DecompositionPlan,
                temperature=self.temperature,
                task_id=task.id,
            )
        except Exception as exc:
            raise DecompositionError(f"Task decomposition failed: {exc}") from exc
        self.last_plan = plan
        logger.debug("Analysis for %s: %s", task.id, plan.analysis)
        logger.debug("Execution plan for %s: %s", task.id, plan.executionPlan)

        sub_tasks = build_sub_tasks(task, plan)
        dangling = unresolved_dependencies(sub_tasks)
        if dangling:
            logger.info("Dependencies naming no sub-task are treated as met: %s", sorted(dangling))
        ordered = schedule(sub_tasks)
        logger.info("Decomposed %s into %d sub-tasks", task.id, len(ordered))
        return ordered
