"""Task dataclasses shared by the decomposer, scheduler and runner."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..memory.simple import ConversationBufferMemory, MemoryRecord


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentKind(str, Enum):
    """The closed set of specialised agents a sub-task can be assigned to."""

    CODE = "code"
    RESEARCH = "research"
    PRESENTATION = "presentation"
    MULTIMODAL = "multimodal"

    @classmethod
    def parse(cls, value: Union["AgentKind", str]) -> "AgentKind":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text == "ppt":
            return cls.PRESENTATION
        return cls(text)


class TaskStatus(str, Enum):
    PENDING = "pending"
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    WAITING_INPUT = "waiting_input"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})


class ArtifactKind(str, Enum):
    CODE = "code"
    FILE = "file"
    IMAGE = "image"
    CHART = "chart"
    PRESENTATION = "presentation"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"


@dataclass
class Artifact:
    """Named output produced by an agent. Binary payloads are referenced by URL."""

    kind: ArtifactKind
    title: str
    content: str = ""
    language: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"artifact-{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "title": self.title,
            "content": self.content,
            "language": self.language,
            "metadata": dict(self.metadata),
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class SubTask:
    """One decomposed unit of a task, assigned to exactly one agent."""

    id: str
    parent_id: str
    title: str
    description: str
    assigned_agent: Union[AgentKind, str]
    priority: int = 3
    dependencies: List[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def agent_name(self) -> str:
        agent = self.assigned_agent
        return agent.value if isinstance(agent, AgentKind) else str(agent)

    def start(self) -> None:
        self._transition(TaskStatus.IN_PROGRESS)

    def complete(self, result: str) -> None:
        self._transition(TaskStatus.COMPLETED)
        self.result = result
        self.completed_at = utcnow()

    def fail(self, error: str) -> None:
        self._transition(TaskStatus.FAILED)
        self.error = error

    def _transition(self, status: TaskStatus) -> None:
        if self.is_terminal:
            raise RuntimeError(
                f"Sub-task {self.id} is already {self.status.value}; cannot move to {status.value}"
            )
        self.status = status

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parentId": self.parent_id,
            "title": self.title,
            "description": self.description,
            "agent": self.agent_name,
            "status": self.status.value,
            "priority": self.priority,
            "dependencies": list(self.dependencies),
            "result": self.result,
            "error": self.error,
            "createdAt": self.created_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class Task:
    """A user-submitted unit of work that is decomposed and executed."""

    title: str
    description: str
    id: str = field(default_factory=lambda: f"task-{uuid.uuid4().hex[:12]}")
    status: TaskStatus = TaskStatus.PENDING
    sub_tasks: List[SubTask] = field(default_factory=list)
    history: ConversationBufferMemory = field(default_factory=ConversationBufferMemory)
    result: Optional[str] = None
    error: Optional[str] = None
    artifacts: List[Artifact] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def touch(self) -> None:
        self.updated_at = utcnow()

    def find_sub_task(self, title: str) -> Optional[SubTask]:
        """Return the first sub-task carrying ``title``."""

        for sub_task in self.sub_tasks:
            if sub_task.title == title:
                return sub_task
        return None

    def get_sub_task(self, sub_task_id: str) -> Optional[SubTask]:
        for sub_task in self.sub_tasks:
            if sub_task.id == sub_task_id:
                return sub_task
        return None

    def summary(self) -> Dict[str, Any]:
        """Compact view sent to clients when a run finishes."""

        return {
            "id": self.id,
            "status": self.status.value,
            "result": self.result,
            "subTasks": [
                {
                    "id": st.id,
                    "title": st.title,
                    "agent": st.agent_name,
                    "status": st.status.value,
                    "result": st.result,
                    "error": st.error,
                }
                for st in self.sub_tasks
            ],
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "subTasks": [st.as_dict() for st in self.sub_tasks],
            "messages": [record.as_dict() for record in self.history.dump()],
            "result": self.result,
            "error": self.error,
            "artifacts": [artifact.as_dict() for artifact in self.artifacts],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class NextAction(str, Enum):
    CONTINUE = "continue"
    WAIT_INPUT = "wait_input"
    DELEGATE = "delegate"
    COMPLETE = "complete"


@dataclass
class AgentContext:
    """Per-run accumulator handed to every agent invocation.

    ``previous_results`` and ``artifacts`` only grow during a run; views made
    with :meth:`for_sub_task` share them with the context they came from.
    """

    task_id: str
    sub_task_id: Optional[str] = None
    history: List[MemoryRecord] = field(default_factory=list)
    previous_results: Dict[str, str] = field(default_factory=dict)
    artifacts: List[Artifact] = field(default_factory=list)

    def for_sub_task(self, sub_task_id: str) -> "AgentContext":
        return replace(self, sub_task_id=sub_task_id)


@dataclass
class AgentResponse:
    message: str
    artifacts: List[Artifact] = field(default_factory=list)
    thinking: Optional[str] = None
    plan: Optional[List[str]] = None
    next_action: NextAction = NextAction.COMPLETE
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)


PROGRESS_STATUSES = ("started", "completed", "failed")


@dataclass
class ProgressEvent:
    """Notification emitted when a sub-task starts, completes, or fails."""

    sub_task: SubTask
    status: str

    def __post_init__(self) -> None:
        if self.status not in PROGRESS_STATUSES:
            raise ValueError(f"Unknown progress status '{self.status}'")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.sub_task.id,
            "title": self.sub_task.title,
            "agent": self.sub_task.agent_name,
            "status": self.status,
        }
