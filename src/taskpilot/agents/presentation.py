"""Presentation agent: structured slide decks."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel

from ..tasks.base import AgentKind, Artifact, ArtifactKind, SubTask
from .base import Agent, AgentContext, AgentResponse, previous_context

PRESENTATION_PROMPT = """You are the Presentation Agent, specialised in clear, attractive slide decks.

Design rules: one idea per slide with a visible hierarchy, key points instead
of paragraphs, visuals that reinforce the message, and one consistent theme.
Pick the layout that suits each slide (title, content, two-column, image,
chart, quote, timeline, comparison) and add speaker notes where useful."""

SUMMARY_PROMPT = "Summarize the presentation you created."


class ChartData(BaseModel):
    type: str
    data: str


class SlideStyle(BaseModel):
    backgroundColor: Optional[str] = None
    textColor: Optional[str] = None
    accentColor: Optional[str] = None


class Slide(BaseModel):
    id: str
    layout: Literal["title", "content", "two-column", "image", "chart", "quote", "timeline", "comparison"]
    title: str
    subtitle: Optional[str] = None
    content: Optional[List[str]] = None
    leftColumn: Optional[List[str]] = None
    rightColumn: Optional[List[str]] = None
    imagePrompt: Optional[str] = None
    chartData: Optional[ChartData] = None
    notes: Optional[str] = None
    style: Optional[SlideStyle] = None


class Theme(BaseModel):
    primaryColor: str
    secondaryColor: str
    fontFamily: str
    style: Literal["professional", "creative", "minimal", "bold"]


class SlideDeck(BaseModel):
    slides: List[Slide]
    theme: Theme


class PresentationAgent(Agent):
    kind = AgentKind.PRESENTATION
    label = "Create a presentation for"
    system_prompt = PRESENTATION_PROMPT

    def build_prompt(self, sub_task: SubTask, context: AgentContext) -> str:
        prompt = f"{self.label}: {sub_task.title}\n\nDetails: {sub_task.description}"
        previous = previous_context(context)
        if previous:
            prompt += f"\n\nContext:\n{previous}"
        return prompt

    def run(self, sub_task: SubTask, context: AgentContext) -> AgentResponse:
        deck = self.client.generate_structured(
            self.system_prompt,
            self.build_prompt(sub_task, context),
            SlideDeck,
            temperature=self.temperature,
            task_id=context.task_id,
        )
        deck_json = deck.model_dump_json(indent=2, exclude_none=True)
        artifact = Artifact(
            kind=ArtifactKind.PRESENTATION,
            title=sub_task.title,
            content=deck_json,
            metadata={"slideCount": len(deck.slides), "theme": deck.theme.model_dump()},
        )
        summary = self.client.generate_text(
            SUMMARY_PROMPT,
            f"Presentation: {deck.model_dump_json(exclude_none=True)}\n\n"
            "Provide a brief summary of the presentation structure and key points.",
            temperature=0.3,
            task_id=context.task_id,
        )
        return AgentResponse(
            message=summary.text,
            artifacts=[artifact],
            plan=[slide.title for slide in deck.slides],
        )
