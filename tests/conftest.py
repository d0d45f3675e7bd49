from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Sequence

import pytest

from orch.models import AgentType, Run, RunState, SendOptions, Status
from orch.runtime.commands import CommandResult
from orch.store import SqliteRunStore


class RecordingRunner:
    """CommandRunner that records argv lists and answers from a handler."""

    def __init__(self, handler: Callable[[list[str]], CommandResult] | None = None) -> None:
        self.calls: list[list[str]] = []
        self._handler = handler or (lambda args: CommandResult(0))

    def run(self, args: Sequence[str], *, timeout=None, env=None) -> CommandResult:
        argv = list(args)
        self.calls.append(argv)
        return self._handler(argv)


class FakeManager:
    """In-memory BackendManager driven by scripted answers."""

    def __init__(
        self,
        *,
        alive: list[bool] | bool = True,
        output: str = "",
        status: Status | None = None,
        dead_status: Status = Status.UNKNOWN,
        prompt: bool = False,
        send_error: Exception | None = None,
    ) -> None:
        self._alive = alive
        self.output = output
        self.status = status
        self.dead_status = dead_status
        self.prompt = prompt
        self.send_error = send_error
        self.sent: list[tuple[str, str, bool]] = []
        self.status_calls: list[tuple[str, bool, bool]] = []

    async def is_alive(self, run: Run) -> bool:
        if isinstance(self._alive, list):
            return self._alive.pop(0)
        return self._alive

    async def capture_output(self, run: Run) -> str:
        return self.output

    def detect_prompt(self, text: str) -> bool:
        return self.prompt

    async def get_status(
        self, run: Run, text: str, state: RunState, output_changed: bool, has_prompt: bool
    ) -> Status | None:
        self.status_calls.append((text, output_changed, has_prompt))
        return self.status

    async def send_message(self, run: Run, text: str, options: SendOptions | None = None) -> None:
        if self.send_error is not None:
            raise self.send_error
        options = options or SendOptions()
        self.sent.append((str(run.ref()), text, options.no_enter))


@pytest.fixture
def store(tmp_path: Path) -> SqliteRunStore:
    return SqliteRunStore(tmp_path / "runs.db")


@pytest.fixture
def short_vault():
    # AF_UNIX socket paths are limited to ~100 bytes; pytest tmp paths can exceed that
    path = Path(tempfile.mkdtemp(prefix="orch-", dir="/tmp"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


def make_run(
    issue_id: str = "ISSUE-1",
    run_id: str = "20260101-120000",
    agent: AgentType = AgentType.CLAUDE,
    status: Status = Status.RUNNING,
    **kwargs,
) -> Run:
    return Run(issue_id=issue_id, run_id=run_id, agent=agent, status=status, **kwargs)
