"""Adapter contract shared by every agent kind."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from ..models import AgentType, InjectionMethod, LaunchConfig
from ..runtime.commands import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)

AVAILABILITY_TIMEOUT = 5.0


class AgentAdapter(ABC):
    """Knows how to start one kind of agent and how its prompt is delivered."""

    binary: str = ""

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self.runner = runner or SubprocessRunner()

    @property
    @abstractmethod
    def agent_type(self) -> AgentType: ...

    @abstractmethod
    def launch_command(self, config: LaunchConfig) -> str:
        """Return the shell command line that starts the agent."""

    def is_available(self) -> bool:
        """Return True when ``<binary> --version`` exits cleanly."""
        if not self.binary:
            return False
        result = self.runner.run([self.binary, "--version"], timeout=AVAILABILITY_TIMEOUT)
        if not result.ok:
            logger.debug("%s unavailable (rc=%d)", self.binary, result.returncode)
        return result.ok

    def prompt_injection(self) -> InjectionMethod:
        return InjectionMethod.ARG

    def ready_pattern(self) -> str:
        """Text that marks the agent ready for keystrokes; empty means no wait."""
        return ""

    def extra_env(self) -> dict[str, str]:
        return {}
