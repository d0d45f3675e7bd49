"""Lookup from agent type to adapter."""

from __future__ import annotations

from ..errors import UnknownAgentError
from ..models import AgentType, parse_agent_type
from ..runtime.commands import CommandRunner
from .base import AgentAdapter
from .opencode import OpenCodeAdapter
from .terminal import ClaudeAdapter, CodexAdapter, CustomAdapter, GeminiAdapter

ADAPTERS: dict[AgentType, type[AgentAdapter]] = {
    AgentType.CLAUDE: ClaudeAdapter,
    AgentType.CODEX: CodexAdapter,
    AgentType.GEMINI: GeminiAdapter,
    AgentType.OPENCODE: OpenCodeAdapter,
    AgentType.CUSTOM: CustomAdapter,
}

# Suggestions only; any model name is accepted.
KNOWN_MODELS: dict[AgentType, list[str]] = {
    AgentType.CODEX: [
        "gpt-5.2-codex",
        "gpt-5.2",
        "gpt-5.1-codex-max",
        "gpt-5.1-codex",
        "gpt-5.1",
        "o3",
        "o4-mini",
        "o1",
        "gpt-4o",
        "gpt-4o-mini",
    ],
    AgentType.CLAUDE: [
        "sonnet",
        "opus",
        "haiku",
        "claude-sonnet-4-5-20250929",
        "claude-3-5-sonnet-20241022",
        "claude-3-opus-latest",
        "claude-3-5-haiku-20241022",
    ],
    AgentType.GEMINI: [
        "gemini-1.5-pro",
        "gemini-1.5-flash",
        "gemini-2.0-flash-exp",
    ],
}


def get_adapter(agent_type: AgentType | str, runner: CommandRunner | None = None) -> AgentAdapter:
    """Return a fresh adapter for ``agent_type``."""
    if not isinstance(agent_type, AgentType):
        agent_type = parse_agent_type(agent_type)
    adapter_cls = ADAPTERS.get(agent_type)
    if adapter_cls is None:
        raise UnknownAgentError(str(agent_type))
    return adapter_cls(runner)


def known_models(agent_type: AgentType) -> list[str]:
    return list(KNOWN_MODELS.get(agent_type, []))
