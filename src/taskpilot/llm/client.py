"""Model-call helpers built on top of an :class:`LLMProvider`.

``generate_text`` runs a small ReAct-style loop when tools are supplied: the
model answers with JSON naming either a tool or ``final``; tool observations
are fed back until a final answer arrives or the step budget is spent.
``generate_structured`` asks for JSON matching a pydantic model's schema and
validates the reply.
"""

from __future__ import annotations

import json
import logging
import re
import textwrap
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import StructuredOutputError
from ..tools.base import Tool, ToolContext
from .provider import LLMProvider, PromptContext

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_STEPS_MESSAGE = "Max steps reached without final answer"

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""

    text = text.strip()
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text


@dataclass
class AgentAction:
    """Parsed output from the model."""

    thought: str
    action: str
    action_input: str
    answer: str | None = None

    @property
    def is_final(self) -> bool:
        return self.action == "final"


@dataclass
class ToolStep:
    """One tool invocation made during ``generate_text``."""

    step: int
    tool: str
    input: str
    output: str
    data: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "tool": self.tool, "input": self.input, "output": self.output}


@dataclass
class Generation:
    text: str
    reasoning: Optional[str] = None
    tool_steps: List[ToolStep] = field(default_factory=list)


class ModelClient:
    """Wraps a provider with text and structured generation."""

    def __init__(self, provider: LLMProvider, name: str = "model") -> None:
        self.provider = provider
        self.name = name

    def generate_text(
        self,
        system: str,
        prompt: str,
        *,
        tools: Optional[Mapping[str, Tool]] = None,
        max_steps: int = 1,
        temperature: Optional[float] = None,
        task_id: str = "",
    ) -> Generation:
        if not tools:
            context = PromptContext(agent_name=self.name, task_id=task_id, iteration=1)
            text = self.provider.complete(system, prompt, context, temperature=temperature)
            return Generation(text=text.strip())
        return ToolLoop(self, dict(tools), task_id).run(system, prompt, max_steps, temperature)

    def generate_structured(
        self,
        system: str,
        prompt: str,
        model_cls: Type[ModelT],
        *,
        temperature: Optional[float] = None,
        task_id: str = "",
    ) -> ModelT:
        schema = model_cls.model_json_schema()
        system = (
            f"{system}\n\nRespond only with a JSON object matching this schema:\n"
            f"{json.dumps(schema)}"
        )
        context = PromptContext(agent_name=self.name, task_id=task_id, iteration=1)
        raw = self.provider.complete(system, prompt, context, temperature=temperature, schema=schema)
        try:
            payload = json.loads(strip_fences(raw))
        except json.JSONDecodeError as exc:
            raise StructuredOutputError(f"Model returned invalid JSON: {exc}") from exc
        try:
            return model_cls.model_validate(payload)
        except ValidationError as exc:
            raise StructuredOutputError(
                f"Model output does not match {model_cls.__name__}: {exc}"
            ) from exc


class ToolLoop:
    """Simple ReAct-style tool-use loop."""

    def __init__(self, client: ModelClient, tools: Dict[str, Tool], task_id: str) -> None:
        self.client = client
        self.tools = tools
        self.task_id = task_id
        self.steps: List[ToolStep] = []
        self.thoughts: List[str] = []

    def run(
        self, system: str, prompt: str, max_steps: int, temperature: Optional[float]
    ) -> Generation:
        system = f"{system}\n\n{self._protocol()}"
        for iteration in range(1, max_steps + 1):
            context = PromptContext(
                agent_name=self.client.name, task_id=self.task_id, iteration=iteration
            )
            response = self.client.provider.complete(
                system, self._build_prompt(prompt, iteration), context, temperature=temperature
            )
            action = self._parse_response(response)
            if action.thought:
                self.thoughts.append(action.thought)
            if action.is_final:
                return Generation(
                    text=(action.answer or action.action_input).strip(),
                    reasoning=self._reasoning(),
                    tool_steps=self.steps,
                )
            self._invoke_tool(action, iteration)
        logger.info("%s used all %d steps without a final answer", self.client.name, max_steps)
        return Generation(text=MAX_STEPS_MESSAGE, reasoning=self._reasoning(), tool_steps=self.steps)

    def _reasoning(self) -> Optional[str]:
        return "\n".join(self.thoughts) or None

    def _protocol(self) -> str:
        tools_desc = "\n".join(tool.prompt_line() for tool in self.tools.values())
        return textwrap.dedent(
            """
            You MUST respond using JSON with keys thought, action, input, answer.
            Set action to a tool name and input to a JSON object of its arguments to call a tool,
            or set action to "final" and answer to your complete response when done.
            Tools available:
            """
        ).strip() + f"\n{tools_desc}"

    def _build_prompt(self, prompt: str, iteration: int) -> str:
        if not self.steps:
            return prompt
        observations = "\n".join(
            f"Step {step.step}: {step.tool}({step.input}) => {step.output}" for step in self.steps
        )
        return f"{prompt}\n\nTool observations so far:\n{observations}\n\nIteration: {iteration}"

    def _parse_response(self, response: str) -> AgentAction:
        try:
            payload = json.loads(strip_fences(response))
        except json.JSONDecodeError:
            payload = None
        if not isinstance(payload, dict):
            # Treat as direct answer
            return AgentAction(
                thought="", action="final", action_input=response, answer=response
            )
        action_input = payload.get("input", "")
        if not isinstance(action_input, str):
            action_input = json.dumps(action_input)
        answer = payload.get("answer")
        return AgentAction(
            thought=str(payload.get("thought", "") or ""),
            action=str(payload.get("action", "final") or "final"),
            action_input=action_input,
            answer=answer if isinstance(answer, str) else None,
        )

    def _invoke_tool(self, action: AgentAction, iteration: int) -> None:
        tool_name = action.action
        if tool_name not in self.tools:
            self.steps.append(
                ToolStep(iteration, tool_name, action.action_input, f"Unknown tool '{tool_name}'")
            )
            return
        result = self.tools[tool_name].run(
            input_text=action.action_input,
            context=ToolContext(
                agent_name=self.client.name,
                task_id=self.task_id,
                step=iteration,
                tool_name=tool_name,
            ),
        )
        logger.debug("%s called %s at step %d", self.client.name, tool_name, iteration)
        self.steps.append(
            ToolStep(iteration, tool_name, action.action_input, result.content, dict(result.data))
        )
