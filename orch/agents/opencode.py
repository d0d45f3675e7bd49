"""Adapter for opencode, which runs as a headless HTTP server."""

from __future__ import annotations

import json
import shlex
import os
import shutil
from pathlib import Path

from ..errors import AgentNotAvailableError
from ..models import AgentType, InjectionMethod, LaunchConfig
from .base import AgentAdapter
from .quoting import double_quote

DEFAULT_PORT = 4096

# Tool permissions granted to unattended runs.
PERMISSIONS = {
    "edit": "allow",
    "bash": "allow",
    "skill": "allow",
    "webfetch": "allow",
    "doom_loop": "allow",
    "external_directory": "allow",
}


def find_opencode_binary() -> str:
    """Locate opencode on PATH or in ``~/.opencode/bin``. Empty string if missing."""
    found = shutil.which("opencode")
    if found:
        return found
    candidate = Path(os.path.expanduser("~")) / ".opencode" / "bin" / "opencode"
    if candidate.is_file():
        return str(candidate)
    return ""


class OpenCodeAdapter(AgentAdapter):
    """The prompt is never on the command line; it goes over HTTP once the server is healthy."""

    binary = "opencode"

    @property
    def agent_type(self) -> AgentType:
        return AgentType.OPENCODE

    def is_available(self) -> bool:
        return bool(find_opencode_binary())

    def launch_command(self, config: LaunchConfig) -> str:
        binary = find_opencode_binary()
        if not binary:
            raise AgentNotAvailableError("opencode binary not found")

        if config.continue_session:
            args = [shlex.quote(binary), "--continue"]
            if config.prompt:
                args += ["--prompt", double_quote(config.prompt)]
            return " ".join(args)

        port = config.port or DEFAULT_PORT
        return f"{shlex.quote(binary)} serve --port {port} --hostname 0.0.0.0"

    def prompt_injection(self) -> InjectionMethod:
        return InjectionMethod.HTTP

    def extra_env(self) -> dict[str, str]:
        return {"OPENCODE_PERMISSION": json.dumps(PERMISSIONS, separators=(",", ":"))}

    def attach_command(self, port: int) -> str:
        """Command that opens the opencode TUI against a running server."""
        return f"opencode attach http://127.0.0.1:{port}"

    def health_endpoint(self, port: int) -> str:
        return f"http://127.0.0.1:{port}/global/health"
