"""Backend manager for agents running inside tmux sessions."""

from __future__ import annotations

import asyncio
import logging

from .. import classifier
from ..errors import SessionNotFoundError, TmuxError
from ..models import Run, RunState, SendOptions, Status
from ..tmux import TmuxClient, is_no_server

logger = logging.getLogger(__name__)

CAPTURE_LINES = 100


class TmuxManager:
    """Supervises terminal agents by reading and typing into their tmux pane.

    tmux calls block on a subprocess, so each one runs in a worker thread.
    """

    dead_status = Status.UNKNOWN

    def __init__(self, tmux: TmuxClient | None = None, capture_lines: int = CAPTURE_LINES) -> None:
        self.tmux = tmux or TmuxClient()
        self.capture_lines = capture_lines

    async def is_alive(self, run: Run) -> bool:
        return await asyncio.to_thread(self.tmux.has_session, run.session_name)

    async def capture_output(self, run: Run) -> str:
        return await asyncio.to_thread(self.tmux.capture_pane, run.session_name, self.capture_lines)

    def detect_prompt(self, text: str) -> bool:
        return classifier.is_waiting_for_input(text)

    async def get_status(
        self,
        run: Run,
        text: str,
        state: RunState,
        output_changed: bool,
        has_prompt: bool,
    ) -> Status | None:
        return classifier.classify(text, output_changed, has_prompt)

    async def send_message(self, run: Run, text: str, options: SendOptions | None = None) -> None:
        options = options or SendOptions()
        await asyncio.to_thread(self._send, run.session_name, text, options.no_enter)

    def _send(self, session: str, text: str, no_enter: bool) -> None:
        if not self.tmux.has_session(session):
            raise SessionNotFoundError(session)
        try:
            # literal first so key names like "Enter" inside the text are not interpreted
            self.tmux.send_keys_literal(session, text)
            if not no_enter:
                self.tmux.send_enter(session)
        except TmuxError as exc:
            # session ended between the check and the send
            if is_no_server(exc.stderr):
                raise SessionNotFoundError(session) from exc
            raise
        logger.debug("Sent %d chars to %s (enter=%s)", len(text), session, not no_enter)
