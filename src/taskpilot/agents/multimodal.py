"""Multimodal agent: images, audio and video."""

from __future__ import annotations

from typing import List

from ..llm.client import ToolStep
from ..tasks.base import AgentKind, Artifact, ArtifactKind, SubTask
from .base import Agent

MULTIMODAL_PROMPT = """You are the Multimodal Agent, specialised in images, audio and video.

You can analyse images (description, OCR, object detection), generate images
from descriptions, transcribe and synthesise speech, and summarise video or
extract its key frames.

Work through the media step by step: identify what is being asked, call the
relevant tools, then present the results with clear formatting. Flag anything
uncertain or unreadable instead of guessing."""


class MultimodalAgent(Agent):
    kind = AgentKind.MULTIMODAL
    label = "Multimodal Task"
    closing = "Process the multimedia content and provide results."
    system_prompt = MULTIMODAL_PROMPT

    def collect_artifacts(self, steps: List[ToolStep], sub_task: SubTask) -> List[Artifact]:
        artifacts = []
        for step in steps:
            if step.tool == "generate_image" and step.data.get("imageId"):
                artifacts.append(
                    Artifact(
                        id=str(step.data["imageId"]),
                        kind=ArtifactKind.IMAGE,
                        title="Generated Image",
                        content=str(step.data.get("prompt", "")),
                        metadata={"url": step.data.get("imageUrl"), "style": step.data.get("style")},
                    )
                )
            elif step.tool == "generate_audio" and step.data.get("audioId"):
                artifacts.append(
                    Artifact(
                        id=str(step.data["audioId"]),
                        kind=ArtifactKind.AUDIO,
                        title="Generated Audio",
                        content=str(step.data.get("audioUrl", "")),
                        metadata={"voice": step.data.get("voice")},
                    )
                )
        return artifacts
