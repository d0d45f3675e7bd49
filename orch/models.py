"""Data models for runs, launches, and status tracking."""

from __future__ import annotations

import hashlib
import os
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from .errors import UnknownAgentError


class AgentType(StrEnum):
    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"
    OPENCODE = "opencode"
    CUSTOM = "custom"


def parse_agent_type(value: str) -> AgentType:
    """Parse an agent identifier, raising ``UnknownAgentError`` for unknown names."""
    try:
        return AgentType(value.strip())
    except ValueError:
        raise UnknownAgentError(value) from None


class InjectionMethod(StrEnum):
    """How the initial prompt reaches a freshly started agent."""

    ARG = "arg"
    TMUX = "tmux"
    HTTP = "http"


class BackendKind(StrEnum):
    TERMINAL = "terminal"
    API = "api"


def backend_kind_for(agent_type: AgentType) -> BackendKind:
    """Map an agent type to the backend that supervises it."""
    match agent_type:
        case AgentType.OPENCODE:
            return BackendKind.API
        case AgentType.CLAUDE | AgentType.CODEX | AgentType.GEMINI | AgentType.CUSTOM:
            return BackendKind.TERMINAL
    raise UnknownAgentError(str(agent_type))


class Status(StrEnum):
    """Run lifecycle states reported by the classifier and backends."""

    QUEUED = "queued"
    BOOTING = "booting"
    RUNNING = "running"
    BLOCKED = "blocked"
    BLOCKED_API = "blocked_api"
    PR_OPEN = "pr_open"
    DONE = "done"
    FAILED = "failed"
    CANCELED = "canceled"
    UNKNOWN = "unknown"  # agent exited, shell prompt showing

    @property
    def is_terminal(self) -> bool:
        return self in (Status.DONE, Status.FAILED, Status.CANCELED, Status.UNKNOWN)


# Statuses the monitor keeps polling.
ACTIVE_STATUSES: tuple[Status, ...] = (
    Status.BOOTING,
    Status.RUNNING,
    Status.BLOCKED,
    Status.BLOCKED_API,
    Status.PR_OPEN,
)


def generate_short_id(issue_id: str, run_id: str) -> str:
    """Return the 6-char hex identifier for a run (git-style)."""
    digest = hashlib.sha256(f"{issue_id}#{run_id}".encode()).hexdigest()
    return digest[:6]


def generate_tmux_session(issue_id: str, run_id: str) -> str:
    return f"run-{issue_id}-{run_id}"


def generate_run_id(now: datetime | None = None) -> str:
    """Generate a run id using the YYYYMMDD-HHMMSS convention."""
    return (now or datetime.now()).strftime("%Y%m%d-%H%M%S")


@dataclass(frozen=True, slots=True)
class RunRef:
    """Reference to a run (``ISSUE_ID#RUN_ID``, or just ``ISSUE_ID`` for latest)."""

    issue_id: str
    run_id: str = ""

    @classmethod
    def parse(cls, ref: str) -> RunRef:
        ref = ref.strip()
        if not ref:
            raise ValueError("empty run reference")
        issue_id, _, run_id = ref.partition("#")
        return cls(issue_id=issue_id, run_id=run_id)

    @property
    def is_latest(self) -> bool:
        return not self.run_id

    def __str__(self) -> str:
        if not self.run_id:
            return self.issue_id
        return f"{self.issue_id}#{self.run_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Run:
    """One supervised execution attempt of an agent against one issue."""

    issue_id: str
    run_id: str
    agent: AgentType = AgentType.CLAUDE
    status: Status = Status.QUEUED
    tmux_session: str = ""
    tmux_window_id: str = ""
    server_port: int = 0
    session_id: str = ""  # remote session id on the headless server
    worktree_path: str = ""
    branch: str = ""
    model: str = ""
    model_variant: str = ""
    pr_url: str = ""
    error: str = ""
    started_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def ref(self) -> RunRef:
        return RunRef(self.issue_id, self.run_id)

    @property
    def short_id(self) -> str:
        return generate_short_id(self.issue_id, self.run_id)

    @property
    def session_name(self) -> str:
        return self.tmux_session or generate_tmux_session(self.issue_id, self.run_id)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["agent"] = self.agent.value
        data["status"] = self.status.value
        data["started_at"] = self.started_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Run:
        values = dict(data)
        values["agent"] = parse_agent_type(str(values.get("agent", AgentType.CLAUDE)))
        values["status"] = Status(values.get("status", Status.QUEUED))
        for key in ("started_at", "updated_at"):
            raw = values.get(key)
            if isinstance(raw, str):
                values[key] = datetime.fromisoformat(raw)
            elif raw is None:
                values.pop(key, None)
        return cls(**values)


@dataclass(frozen=True)
class LaunchConfig:
    """How to start one agent instance. Never mutated after the process starts."""

    agent_type: AgentType
    working_dir: str = ""
    issue_id: str = ""
    run_id: str = ""
    run_path: str = ""
    vault_path: str = ""
    branch: str = ""
    prompt: str = ""
    custom_cmd: str = ""
    resume: bool = False
    session_name: str = ""
    profile: str = ""
    port: int = 0
    model: str = ""
    model_variant: str = ""
    continue_session: bool = False

    def env(self) -> dict[str, str]:
        """Environment variables exported to the launched agent."""
        env = {
            "ORCH_ISSUE_ID": self.issue_id,
            "ORCH_RUN_ID": self.run_id,
            "ORCH_RUN_PATH": self.run_path,
            "ORCH_WORKTREE_PATH": self.working_dir,
            "ORCH_BRANCH": self.branch,
            "ORCH_VAULT": self.vault_path,
        }
        # OAuth credentials live under HOME for several agent CLIs
        home = os.getenv("HOME")
        if home:
            env["HOME"] = home
        return env

    def with_port(self, port: int) -> LaunchConfig:
        return replace(self, port=port)


@dataclass
class RunState:
    """Per-run polling cache held by the monitor for the life of one process."""

    last_output: str = ""
    output_hash: str = ""
    last_output_at: datetime = field(default_factory=_utcnow)
    last_check_at: datetime = field(default_factory=_utcnow)
    pr_recorded: bool = False
    was_alive: bool = False
    dead_check_count: int = 0


@dataclass(frozen=True, slots=True)
class SendOptions:
    no_enter: bool = False
