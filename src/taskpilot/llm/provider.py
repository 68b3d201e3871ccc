"""Provider abstractions used by the agent runtime."""

from __future__ import annotations

import json
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Union

from ..errors import ProviderError


@dataclass
class PromptContext:
    """Metadata about the prompt being generated."""

    agent_name: str
    task_id: str
    iteration: int


class LLMProvider(Protocol):
    """Interface for language model providers."""

    def complete(
        self,
        system: str,
        prompt: str,
        context: PromptContext,
        *,
        temperature: Optional[float] = None,
        schema: Optional[Dict[str, Any]] = None,
    ) -> str:  # pragma: no cover - interface
        """Return the model's reply. ``schema`` requests JSON matching that schema."""


Response = Union[str, BaseException, Callable[[str, str], str]]


class StaticResponseProvider:
    """Provider that replays a finite list of responses (useful for tests).

    A response may be a string, an exception instance (raised instead of
    returned), or a callable receiving ``(system, prompt)``. Every call is
    recorded in ``calls``.
    """

    def __init__(self, responses: Iterable[Response] = (), **_: Any) -> None:
        self._responses = iter(list(responses))
        self._lock = threading.Lock()
        self.calls: List[Dict[str, Any]] = []

    def complete(
        self,
        system: str,
        prompt: str,
        context: PromptContext,
        *,
        temperature: Optional[float] = None,
        schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        with self._lock:
            self.calls.append(
                {
                    "system": system,
                    "prompt": prompt,
                    "agent": context.agent_name,
                    "task_id": context.task_id,
                    "temperature": temperature,
                    "schema": schema,
                }
            )
            try:
                response = next(self._responses)
            except StopIteration as exc:
                raise ProviderError("StaticResponseProvider exhausted") from exc
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(system, prompt)
        return response


class OllamaProvider:
    """Calls a locally hosted Ollama model via its chat API."""

    def __init__(
        self,
        model: str,
        *,
        host: str = "http://localhost:11434",
        options: Dict[str, Any] | None = None,
        timeout: float = 120.0,
        keep_alive: str | None = None,
    ) -> None:
        self.model = model
        self.host = host.rstrip("/")
        self.options = options or {}
        self.timeout = timeout
        self.keep_alive = keep_alive

    def _payload(
        self,
        system: str,
        prompt: str,
        temperature: Optional[float],
        schema: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        options = dict(self.options)
        if temperature is not None:
            options["temperature"] = temperature
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "options": options,
        }
        if schema is not None:
            payload["format"] = schema
        if self.keep_alive:
            payload["keep_alive"] = self.keep_alive
        return payload

    def complete(
        self,
        system: str,
        prompt: str,
        context: PromptContext,
        *,
        temperature: Optional[float] = None,
        schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        payload = self._payload(system, prompt, temperature, schema)
        request = urllib.request.Request(
            url=f"{self.host}/api/chat",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")
        except urllib.error.URLError as exc:
            raise ProviderError(f"OllamaProvider failed to reach {self.host}: {exc}") from exc
        except TimeoutError as exc:
            raise ProviderError(f"OllamaProvider timed out after {self.timeout}s") from exc
        try:
            data = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ProviderError(f"OllamaProvider returned invalid JSON: {body[:200]}") from exc
        if "error" in data:
            raise ProviderError(f"OllamaProvider error: {data['error']}")
        result = (data.get("message") or {}).get("content")
        if not isinstance(result, str):
            raise ProviderError(f"OllamaProvider returned unexpected payload: {data}")
        return result.strip()
