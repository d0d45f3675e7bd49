"""Backend manager for headless agents reached over HTTP."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ..errors import HeadlessConfigError, HeadlessRequestError
from ..headless.client import OpenCodeClient
from ..headless.models import Message, SessionStatus
from ..models import Run, RunState, SendOptions, Status

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5.0
TRANSCRIPT_LINES = 100

ClientFactory = Callable[[int], OpenCodeClient]

_STATUS_MAP = {
    SessionStatus.BUSY: Status.RUNNING,
    SessionStatus.IDLE: Status.BLOCKED,
    SessionStatus.RETRY: Status.BLOCKED_API,
}


def format_transcript(messages: list[Message], max_lines: int = TRANSCRIPT_LINES) -> str:
    """Render messages as ``--- [ROLE] ---`` headers followed by their text parts.

    Keeps the most recent ``max_lines`` lines.
    """
    lines: list[str] = []
    for message in messages:
        role = message.info.role.upper() or "UNKNOWN"
        lines.append(f"--- [{role}] ---")
        for part in message.parts:
            if part.type != "text" or not part.text:
                continue
            lines.extend(part.text.split("\n"))
    return "\n".join(lines[-max_lines:])


class HeadlessManager:
    """Supervises opencode runs through the server's REST API."""

    dead_status = Status.FAILED

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self.client_factory = client_factory or OpenCodeClient

    def _client(self, run: Run) -> OpenCodeClient:
        return self.client_factory(run.server_port)

    async def is_alive(self, run: Run) -> bool:
        if run.server_port <= 0 or not run.session_id:
            return False
        client = self._client(run)
        try:
            async with asyncio.timeout(REQUEST_TIMEOUT):
                if not await client.is_server_running():
                    return False
                return run.session_id in await client.get_session_ids()
        except (HeadlessRequestError, TimeoutError) as exc:
            logger.debug("%s: liveness check failed: %s", run.ref(), exc)
            return False

    async def capture_output(self, run: Run) -> str:
        async with asyncio.timeout(REQUEST_TIMEOUT):
            messages = await self._client(run).get_messages(run.session_id, run.worktree_path)
        if not messages:
            return ""
        return format_transcript(messages)

    def detect_prompt(self, text: str) -> bool:
        return False

    async def get_status(
        self,
        run: Run,
        text: str,
        state: RunState,
        output_changed: bool,
        has_prompt: bool,
    ) -> Status | None:
        # the remote session may not exist yet
        if run.status in (Status.BOOTING, Status.QUEUED):
            return Status.RUNNING
        try:
            async with asyncio.timeout(REQUEST_TIMEOUT):
                status, found = await self._client(run).get_single_session_status(run.session_id)
        except (HeadlessRequestError, TimeoutError) as exc:
            logger.debug("%s: session status unavailable: %s", run.ref(), exc)
            return None
        if not found:
            return Status.BLOCKED
        return _STATUS_MAP.get(status)

    async def send_message(self, run: Run, text: str, options: SendOptions | None = None) -> None:
        # no_enter has no meaning for an HTTP prompt
        ref = str(run.ref())
        if run.server_port <= 0:
            raise HeadlessConfigError(ref, "server port")
        if not run.session_id:
            raise HeadlessConfigError(ref, "session ID")
        await self._client(run).send_message_prompt(
            run.session_id, text, directory=run.worktree_path
        )
