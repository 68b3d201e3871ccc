"""Task primitives."""

from .base import (
    AgentContext,
    AgentKind,
    AgentResponse,
    Artifact,
    ArtifactKind,
    ProgressEvent,
    SubTask,
    Task,
    TaskStatus,
)
from .runner import TaskRunner
from .scheduler import schedule

__all__ = [
    "AgentContext",
    "AgentKind",
    "AgentResponse",
    "Artifact",
    "ArtifactKind",
    "ProgressEvent",
    "SubTask",
    "Task",
    "TaskStatus",
    "TaskRunner",
    "schedule",
]
