"""Catalogue of the tools agents can be given."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Mapping

from ..config import ConfigError, ToolSpec, instantiate_from_path
from .base import Tool

ToolFactory = Callable[[], Tool]


class ToolRegistry:
    """Maps tool names to factories; each tool is built once, on first use."""

    def __init__(self) -> None:
        self._factories: Dict[str, ToolFactory] = {}
        self._built: Dict[str, Tool] = {}

    def register(self, name: str, factory: ToolFactory, *, replace: bool = False) -> None:
        if name in self._factories and not replace:
            raise ValueError(f"Tool '{name}' already registered")
        self._factories[name] = factory
        self._built.pop(name, None)

    def register_spec(self, spec: ToolSpec) -> None:
        """Register a configured tool, replacing any built-in of the same name."""

        def build() -> Tool:
            tool = instantiate_from_path(spec.type, name=spec.name, **spec.args)
            if not isinstance(tool, Tool):
                raise TypeError(f"Tool '{spec.name}' must inherit Tool")
            return tool

        self.register(spec.name, build, replace=True)

    def load_specs(self, specs: Mapping[str, ToolSpec]) -> None:
        for spec in specs.values():
            self.register_spec(spec)

    def get(self, name: str) -> Tool:
        if name not in self._built:
            try:
                factory = self._factories[name]
            except KeyError as exc:
                raise KeyError(f"Tool '{name}' not registered") from exc
            self._built[name] = factory()
        return self._built[name]

    def select(self, names: Iterable[str]) -> Dict[str, Tool]:
        """Build the named tools, keeping the requested order."""

        wanted = list(names)
        missing = [name for name in wanted if name not in self._factories]
        if missing:
            raise ConfigError(f"Unknown tools: {', '.join(missing)}")
        return {name: self.get(name) for name in wanted}

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    def names(self) -> List[str]:
        return sorted(self._factories)
