"""Agent engine that runs a sub-task through an AutoGen two-agent chat."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from autogen import AssistantAgent, UserProxyAgent, register_function

from ..llm.client import ToolStep
from ..tasks.base import SubTask
from ..tools.base import Tool, ToolContext
from .base import Agent, AgentContext, AgentResponse

FINAL_MARKER = "FINAL:"


class AutogenAgent(Agent):
    """Wraps a native agent, keeping its prompt, tools and artifact rules."""

    def __init__(self, inner: Agent, llm_params: Dict[str, Any]) -> None:
        super().__init__(
            name=inner.name,
            description=inner.description,
            client=inner.client,
            tools=inner.tools,
            max_steps=inner.max_steps,
            temperature=inner.temperature,
        )
        self.inner = inner
        self.kind = inner.kind
        self.llm_params = dict(llm_params)

    def run(self, sub_task: SubTask, context: AgentContext) -> AgentResponse:
        steps: List[ToolStep] = []
        assistant = self._build_assistant(sub_task.id)
        user = self._build_user(sub_task.id)
        for tool_name, tool in self.tools.items():
            register_function(
                self._wrap_tool(tool_name, tool, context.task_id, steps),
                caller=assistant,
                executor=user,
                name=tool_name,
                description=tool.description or tool_name,
            )
        prompt = (
            f"{self.inner.build_prompt(sub_task, context)}\n\n"
            f"When completed, respond with '{FINAL_MARKER} <summary>'."
        )
        result = user.initiate_chat(assistant, message=prompt, max_turns=max(4, self.max_steps * 2))
        return AgentResponse(
            message=self._extract_content(result),
            artifacts=self.inner.collect_artifacts(steps, sub_task),
            tool_calls=[step.as_dict() for step in steps],
        )

    def _build_assistant(self, sub_task_id: str) -> AssistantAgent:
        config_list = [
            {
                "model": self.llm_params.get("model", "llama3.2"),
                "client_host": self.llm_params.get("host", "http://127.0.0.1:11434"),
                "api_type": "ollama",
            }
        ]
        system_message = (
            f"{self.inner.system_prompt}\n\nUse the registered functions to complete the "
            f"assigned task. When you finish, respond with: {FINAL_MARKER} <your complete answer>."
        )
        return AssistantAgent(
            name=f"{self.kind.value}_{sub_task_id}".replace("-", "_"),
            llm_config={
                "timeout": self.llm_params.get("timeout", 120),
                "config_list": config_list,
                "temperature": self.temperature,
                "cache_seed": None,
            },
            system_message=system_message,
        )

    def _build_user(self, sub_task_id: str) -> UserProxyAgent:
        return UserProxyAgent(
            name=f"{sub_task_id}_runner".replace("-", "_"),
            human_input_mode="NEVER",
            code_execution_config=False,
            is_termination_msg=is_final_message,
        )

    def _wrap_tool(self, name: str, tool: Tool, task_id: str, steps: List[ToolStep]):
        def _tool_func(arguments: str = "") -> str:
            step = len(steps) + 1
            result = tool.run(
                input_text=arguments,
                context=ToolContext(
                    agent_name=self.name, task_id=task_id, step=step, tool_name=name
                ),
            )
            steps.append(ToolStep(step, name, arguments, result.content, dict(result.data)))
            return result.content

        _tool_func.__name__ = name
        _tool_func.__doc__ = tool.description or name
        return _tool_func

    def _extract_content(self, result: Any) -> str:
        history = getattr(result, "chat_history", None) or []
        for message in reversed(history):
            content = (message or {}).get("content") or ""
            if content.strip().upper().startswith(FINAL_MARKER):
                return strip_final(content)
        summary = getattr(result, "summary", None)
        if isinstance(summary, str):
            return strip_final(summary)
        if isinstance(result, dict):
            return strip_final(result.get("content", ""))
        return strip_final(str(result))


def strip_final(content: str) -> str:
    text = content.strip()
    if text.upper().startswith(FINAL_MARKER):
        text = text[len(FINAL_MARKER):]
    return text.strip()


def is_final_message(message: Dict[str, Any]) -> bool:
    content = (message or {}).get("content", "") or ""
    if not isinstance(content, str):
        content = json.dumps(content)
    return content.strip().upper().startswith(FINAL_MARKER)
