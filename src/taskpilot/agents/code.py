"""Code agent: full-stack development work."""

from __future__ import annotations

from typing import List

from ..llm.client import ToolStep
from ..tasks.base import AgentKind, Artifact, ArtifactKind, SubTask
from .base import Agent

CODE_PROMPT = """You are the Code Agent, specialised in full-stack web development.

Expertise: frontend frameworks (React, Next.js, Vue), backend APIs, databases
(PostgreSQL, Prisma, MongoDB), authentication (OAuth, JWT), payments (Stripe)
and testing (Playwright, Jest, pytest).

For each file you produce, call write_file with its path, the complete content
and its language. Write complete, runnable code with all imports, handle
errors and edge cases, keep secrets in environment variables, and add tests
for critical behaviour. Finish with a short explanation of what was built and
any dependencies it needs."""


class CodeAgent(Agent):
    kind = AgentKind.CODE
    label = "Task"
    closing = "Generate the required code with full implementation."
    system_prompt = CODE_PROMPT

    def collect_artifacts(self, steps: List[ToolStep], sub_task: SubTask) -> List[Artifact]:
        artifacts = []
        for step in steps:
            if step.tool == "write_file" and step.data.get("success"):
                artifacts.append(
                    Artifact(
                        kind=ArtifactKind.CODE,
                        title=str(step.data.get("path", sub_task.title)),
                        content=str(step.data.get("content", "")),
                        language=step.data.get("language"),
                        metadata={"size": step.data.get("size", 0), "subTaskId": sub_task.id},
                    )
                )
        return artifacts
