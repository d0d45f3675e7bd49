"""Backend-agnostic interface over a live agent session."""

from __future__ import annotations

from typing import Protocol

from ..models import BackendKind, Run, RunState, SendOptions, Status, backend_kind_for
from ..tmux import TmuxClient
from .api import ClientFactory, HeadlessManager
from .terminal import TmuxManager


class BackendManager(Protocol):
    """Liveness, capture, status and message injection for one kind of backend."""

    dead_status: Status

    async def is_alive(self, run: Run) -> bool:
        """Return True while the backing session exists."""
        ...

    async def capture_output(self, run: Run) -> str:
        """Return recent output text for classification."""
        ...

    def detect_prompt(self, text: str) -> bool:
        """Return True when ``text`` shows the agent waiting for input."""
        ...

    async def get_status(
        self,
        run: Run,
        text: str,
        state: RunState,
        output_changed: bool,
        has_prompt: bool,
    ) -> Status | None:
        """Derive a status, or None to keep the stored one. Never raises."""
        ...

    async def send_message(self, run: Run, text: str, options: SendOptions | None = None) -> None:
        """Inject a follow-up message into the live session."""
        ...


def manager_for_run(
    run: Run,
    *,
    tmux: TmuxClient | None = None,
    client_factory: ClientFactory | None = None,
) -> BackendManager:
    """Pick the manager matching the run's agent type."""
    match backend_kind_for(run.agent):
        case BackendKind.TERMINAL:
            return TmuxManager(tmux)
        case BackendKind.API:
            return HeadlessManager(client_factory)
