"""Configuration helpers for taskpilot projects."""

from __future__ import annotations

import importlib
import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Tuple

import yaml

from .tasks.base import AgentKind

CONFIG_ENV_VAR = "TASKPILOT_CONFIG"
DEFAULT_PROVIDER = "taskpilot.llm.provider:OllamaProvider"
ENGINES = ("native", "autogen")


class ConfigError(RuntimeError):
    """Raised when configuration files are invalid."""


AGENT_DEFAULTS: Dict[AgentKind, Dict[str, Any]] = {
    AgentKind.CODE: {
        "description": "Full-stack development with auth, database, testing, and payments",
        "tools": ["write_file", "execute_code", "run_tests", "install_package"],
        "max_steps": 15,
        "temperature": 0.2,
    },
    AgentKind.RESEARCH: {
        "description": "Deep research with search, analysis, and visualization",
        "tools": ["web_search", "browse_url", "extract_content", "generate_chart", "analyze_data"],
        "max_steps": 15,
        "temperature": 0.4,
    },
    AgentKind.PRESENTATION: {
        "description": "Create beautiful presentations with flexible layouts",
        "tools": ["create_slide", "add_chart", "add_image", "export_pptx"],
        "max_steps": 10,
        "temperature": 0.5,
    },
    AgentKind.MULTIMODAL: {
        "description": "Process and generate images, audio, and video",
        "tools": [
            "analyze_image",
            "generate_image",
            "transcribe_audio",
            "generate_audio",
            "analyze_video",
        ],
        "max_steps": 10,
        "temperature": 0.6,
    },
}


@dataclass
class AgentSpec:
    """Definition of one of the four specialised agents."""

    kind: AgentKind
    description: str
    tools: List[str]
    max_steps: int
    temperature: float
    llm_provider: Optional[str] = None
    llm_params: Dict[str, Any] = field(default_factory=dict)
    engine: str = "native"

    @classmethod
    def default(cls, kind: AgentKind) -> "AgentSpec":
        return cls.from_mapping(kind, {})

    @classmethod
    def from_mapping(cls, kind: AgentKind, data: Mapping[str, Any]) -> "AgentSpec":
        base = AGENT_DEFAULTS[kind]
        engine = str(data.get("engine", "native"))
        if engine not in ENGINES:
            raise ConfigError(f"Agent '{kind.value}' has unknown engine '{engine}'")
        max_steps = int(data.get("max_steps", base["max_steps"]))
        if max_steps < 1:
            raise ConfigError(f"Agent '{kind.value}' needs max_steps >= 1")
        return cls(
            kind=kind,
            description=str(data.get("description", base["description"])),
            tools=list(data.get("tools", base["tools"])),
            max_steps=max_steps,
            temperature=float(data.get("temperature", base["temperature"])),
            llm_provider=data.get("llm_provider"),
            llm_params=dict(data.get("llm_params", {})),
            engine=engine,
        )


@dataclass
class OrchestratorSpec:
    """Settings for the decomposition and aggregation calls."""

    temperature: float = 0.3
    aggregation_temperature: float = 0.3
    fallback_on_aggregation_error: bool = False
    llm_provider: Optional[str] = None
    llm_params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "OrchestratorSpec":
        if not data:
            return cls()
        return cls(
            temperature=float(data.get("temperature", 0.3)),
            aggregation_temperature=float(data.get("aggregation_temperature", 0.3)),
            fallback_on_aggregation_error=bool(data.get("fallback_on_aggregation_error", False)),
            llm_provider=data.get("llm_provider"),
            llm_params=dict(data.get("llm_params", {})),
        )


@dataclass
class ExecutionSpec:
    """Wall-clock budget for a single task run, in seconds (None disables it)."""

    timeout: Optional[float] = 120.0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ExecutionSpec":
        if not data:
            return cls()
        timeout = data.get("timeout", 120.0)
        return cls(timeout=None if timeout is None else float(timeout))


@dataclass
class ToolSpec:
    """Configuration for a tool instance."""

    name: str
    type: str
    args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "ToolSpec":
        if "type" not in data:
            raise ConfigError(f"Tool '{name}' requires a type path")
        return cls(name=name, type=str(data["type"]), args=dict(data.get("args", {})))


@dataclass
class DefaultsSpec:
    """Provider defaults applied to the orchestrator and every agent."""

    llm_provider: str = DEFAULT_PROVIDER
    llm_params: Dict[str, Any] = field(default_factory=lambda: {"model": "llama3.2"})

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "DefaultsSpec":
        if not data:
            return cls()
        defaults = cls()
        return cls(
            llm_provider=data.get("llm_provider") or defaults.llm_provider,
            llm_params=dict(data.get("llm_params", defaults.llm_params)),
        )


@dataclass
class ProjectConfig:
    """Representation of the YAML configuration."""

    name: str
    description: Optional[str]
    defaults: DefaultsSpec
    orchestrator: OrchestratorSpec
    execution: ExecutionSpec
    agents: Dict[AgentKind, AgentSpec]
    tool_specs: Dict[str, ToolSpec]

    @classmethod
    def default(cls) -> "ProjectConfig":
        return cls.from_mapping({})

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "ProjectConfig":
        data = yaml.safe_load(pathlib.Path(path).read_text())
        if data is None:
            data = {}
        if not isinstance(data, MutableMapping):
            raise ConfigError("Configuration root must be a mapping")
        data.setdefault("name", pathlib.Path(path).stem)
        return cls.from_mapping(data)

    @classmethod
    def from_env(cls) -> "ProjectConfig":
        path = os.environ.get(CONFIG_ENV_VAR)
        if path:
            return cls.from_file(path)
        return cls.default()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProjectConfig":
        agents = {kind: AgentSpec.default(kind) for kind in AgentKind}
        for name, info in (data.get("agents") or {}).items():
            try:
                kind = AgentKind.parse(name)
            except ValueError as exc:
                raise ConfigError(f"Unknown agent '{name}' in configuration") from exc
            agents[kind] = AgentSpec.from_mapping(kind, info or {})
        tool_specs = {
            name: ToolSpec.from_mapping(name, info)
            for name, info in (data.get("tools") or {}).items()
        }
        return cls(
            name=data.get("name", "taskpilot"),
            description=data.get("description"),
            defaults=DefaultsSpec.from_mapping(data.get("defaults")),
            orchestrator=OrchestratorSpec.from_mapping(data.get("orchestrator")),
            execution=ExecutionSpec.from_mapping(data.get("execution")),
            agents=agents,
            tool_specs=tool_specs,
        )

    def get_agent(self, kind: AgentKind | str) -> AgentSpec:
        try:
            return self.agents[AgentKind.parse(kind)]
        except (KeyError, ValueError) as exc:
            raise ConfigError(f"Unknown agent '{kind}'") from exc

    def provider_for(
        self, provider: Optional[str], params: Mapping[str, Any]
    ) -> Tuple[str, Dict[str, Any]]:
        """Merge a component's provider settings over the project defaults."""

        merged = dict(self.defaults.llm_params)
        merged.update(params)
        return provider or self.defaults.llm_provider, merged


def import_string(path: str) -> Any:
    """Return attribute from module specified by path "module:qualname"."""

    if ":" not in path:
        raise ConfigError(f"Import path '{path}' must use module:qualname format")
    module_path, attr = path.split(":", 1)
    module = importlib.import_module(module_path)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"Module '{module_path}' has no attribute '{attr}'") from exc


def instantiate_from_path(path: str, *args: Any, **kwargs: Any) -> Any:
    """Import and instantiate a class given its dotted path."""

    cls = import_string(path)
    return cls(*args, **kwargs)
