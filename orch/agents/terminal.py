"""Adapters for agents that run as interactive terminal programs."""

from __future__ import annotations

import shlex

from ..errors import CustomCommandMissingError
from ..models import AgentType, LaunchConfig
from .base import AgentAdapter
from .quoting import single_quote


class ClaudeAdapter(AgentAdapter):
    binary = "claude"

    @property
    def agent_type(self) -> AgentType:
        return AgentType.CLAUDE

    def launch_command(self, config: LaunchConfig) -> str:
        args = [self.binary, "--dangerously-skip-permissions"]
        if config.model:
            args += ["--model", shlex.quote(config.model)]
        if config.resume and config.session_name:
            args += ["--resume", shlex.quote(config.session_name)]
        if config.prompt:
            args += ["-p", single_quote(config.prompt)]
        return " ".join(args)


class CodexAdapter(AgentAdapter):
    binary = "codex"

    @property
    def agent_type(self) -> AgentType:
        return AgentType.CODEX

    def launch_command(self, config: LaunchConfig) -> str:
        args = [self.binary, "--full-auto"]
        if config.model:
            args += ["--model", shlex.quote(config.model)]
        if config.model_variant:
            args += ["-c", shlex.quote(f"model_reasoning_effort={config.model_variant}")]
        if config.prompt:
            args.append(single_quote(config.prompt))
        return " ".join(args)


class GeminiAdapter(AgentAdapter):
    binary = "gemini"

    @property
    def agent_type(self) -> AgentType:
        return AgentType.GEMINI

    def launch_command(self, config: LaunchConfig) -> str:
        args = [self.binary, "--yolo"]
        if config.model:
            args += ["--model", shlex.quote(config.model)]
        if config.prompt:
            args += ["-p", single_quote(config.prompt)]
        return " ".join(args)


class CustomAdapter(AgentAdapter):
    """Runs a user-supplied command line verbatim."""

    @property
    def agent_type(self) -> AgentType:
        return AgentType.CUSTOM

    def is_available(self) -> bool:
        # the command is only known at launch time
        return True

    def launch_command(self, config: LaunchConfig) -> str:
        if not config.custom_cmd:
            raise CustomCommandMissingError()
        if config.prompt:
            return f"{config.custom_cmd} {single_quote(config.prompt)}"
        return config.custom_cmd
