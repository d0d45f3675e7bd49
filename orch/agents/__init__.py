"""Agent adapters: how each agent kind is launched and fed its prompt."""

from .base import AgentAdapter
from .display import agent_display_name
from .opencode import OpenCodeAdapter
from .registry import get_adapter, known_models
from .terminal import ClaudeAdapter, CodexAdapter, CustomAdapter, GeminiAdapter

__all__ = [
    "AgentAdapter",
    "ClaudeAdapter",
    "CodexAdapter",
    "CustomAdapter",
    "GeminiAdapter",
    "OpenCodeAdapter",
    "agent_display_name",
    "get_adapter",
    "known_models",
]
