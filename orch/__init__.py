"""orch: supervise AI coding-agent sessions in tmux or behind a headless HTTP server."""

from .models import AgentType, BackendKind, InjectionMethod, LaunchConfig, Run, RunRef, Status

__version__ = "0.1.0"

__all__ = [
    "AgentType",
    "BackendKind",
    "InjectionMethod",
    "LaunchConfig",
    "Run",
    "RunRef",
    "Status",
]
