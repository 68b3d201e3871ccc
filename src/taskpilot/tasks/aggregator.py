"""Synthesis of sub-task results into the task's final answer."""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from ..errors import AggregationError
from ..llm.client import ModelClient
from .base import AgentResponse, Task

logger = logging.getLogger(__name__)

SYNTHESIS_PROMPT = """You are synthesizing results from multiple specialized agents into a cohesive final response.
Provide a clear, well-organized summary that addresses the original task."""


def build_sections(task: Task, results: Mapping[str, AgentResponse]) -> str:
    """One ``## heading`` block per result, in insertion order."""

    sections = []
    for sub_task_id, response in results.items():
        sub_task = task.get_sub_task(sub_task_id)
        heading = sub_task.title if sub_task is not None else sub_task_id
        sections.append(f"## {heading}\n{response.message}")
    return "\n\n".join(sections)


def build_prompt(task: Task, results: Mapping[str, AgentResponse]) -> str:
    return (
        f"Original Task: {task.title}\n{task.description}\n\n---\n\n"
        f"Agent Results:\n\n{build_sections(task, results)}\n\n---\n\n"
        "Provide a comprehensive final response that synthesizes all agent outputs."
    )


class Aggregator:
    """Issues the final synthesis call.

    Model errors raise :class:`AggregationError` unless ``fallback_on_error``
    is set, in which case the raw result sections are returned instead.
    """

    def __init__(
        self, client: ModelClient, temperature: float = 0.3, fallback_on_error: bool = False
    ) -> None:
        self.client = client
        self.temperature = temperature
        self.fallback_on_error = fallback_on_error

    async def aggregate(self, task: Task, results: Mapping[str, AgentResponse]) -> str:
        try:
            generation = await asyncio.to_thread(
                self.client.generate_text,
                SYNTHESIS_PROMPT,
                build_prompt(task, results),
                temperature=self.temperature,
                task_id=task.id,
            )
        except Exception as exc:
            if not self.fallback_on_error:
                raise AggregationError(f"Result aggregation failed: {exc}") from exc
            logger.warning("Aggregation failed for %s, returning raw results: %s", task.id, exc)
            return build_sections(task, results)
        return generation.text
