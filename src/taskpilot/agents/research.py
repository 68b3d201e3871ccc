"""Research agent: search, analysis and charts."""

from __future__ import annotations

from typing import List

from ..llm.client import ToolStep
from ..tasks.base import AgentKind, Artifact, ArtifactKind, SubTask
from .base import Agent

RESEARCH_PROMPT = """You are the Research Agent, specialised in comprehensive research and analysis.

Method: understand the question, identify the information needed, search
several authoritative sources, cross-check facts, analyse the data for
patterns and generate charts where they help.

Report format: open with an executive summary, organise findings by theme,
cite sources, highlight key insights and close with recommendations. Separate
facts from opinions and state any gaps or limitations."""


class ResearchAgent(Agent):
    kind = AgentKind.RESEARCH
    label = "Research Task"
    closing = "Conduct comprehensive research and provide detailed findings."
    system_prompt = RESEARCH_PROMPT

    def collect_artifacts(self, steps: List[ToolStep], sub_task: SubTask) -> List[Artifact]:
        artifacts = []
        for step in steps:
            if step.tool == "generate_chart" and step.data.get("chartId"):
                artifacts.append(
                    Artifact(
                        id=str(step.data["chartId"]),
                        kind=ArtifactKind.CHART,
                        title=str(step.data.get("title", sub_task.title)),
                        content=str(step.data.get("imageUrl", "")),
                        metadata={"chartType": step.data.get("type")},
                    )
                )
        return artifacts
