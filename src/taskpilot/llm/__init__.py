"""LLM provider interfaces."""

from .client import Generation, ModelClient, ToolStep
from .provider import LLMProvider, OllamaProvider, PromptContext, StaticResponseProvider

__all__ = [
    "LLMProvider",
    "PromptContext",
    "StaticResponseProvider",
    "OllamaProvider",
    "ModelClient",
    "Generation",
    "ToolStep",
]
