"""Tool interface shared by every agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ToolContext:
    """Who is calling a tool and at which step of its loop."""

    agent_name: str
    task_id: str
    step: int
    tool_name: str = ""


@dataclass
class ToolResult:
    """Outcome of a tool call.

    ``content`` is the observation fed back to the model; ``data`` keeps the
    structured payload so agents can turn tool calls into artifacts.
    """

    content: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return bool(self.data.get("success", True))


class Tool:
    """A named action the model can request while an agent works.

    The class docstring doubles as the description shown to the model. Extra
    keyword options from configuration are kept in ``options``.
    """

    name: str
    description: str

    def __init__(self, name: str, description: Optional[str] = None, **options: Any) -> None:
        self.name = name
        self.description = (description or self.__class__.__doc__ or "").strip()
        self.options = options

    def prompt_line(self) -> str:
        return f"- {self.name}: {self.description}"

    def run(self, *, input_text: str, context: ToolContext) -> ToolResult:  # pragma: no cover - abstract
        raise NotImplementedError
