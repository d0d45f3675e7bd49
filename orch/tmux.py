"""Thin wrapper around the tmux command line."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from .errors import TmuxError
from .runtime.commands import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)

READY_POLL_INTERVAL = 0.2
READY_CAPTURE_LINES = 50


@dataclass(frozen=True, slots=True)
class Window:
    index: int
    name: str
    id: str


def is_no_server(stderr: str) -> bool:
    return "no server running" in stderr or "can't find session" in stderr


class TmuxClient:
    """Runs tmux subcommands through a ``CommandRunner``."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.runner = runner or SubprocessRunner()
        self._sleep = sleep
        self._clock = clock

    def _tmux(self, *args: str):
        return self.runner.run(["tmux", *args])

    def is_available(self) -> bool:
        return self._tmux("-V").ok

    def has_session(self, name: str) -> bool:
        return self._tmux("has-session", "-t", name).ok

    def new_session(
        self,
        name: str,
        *,
        work_dir: str = "",
        command: str = "",
        env: dict[str, str] | None = None,
        window_name: str = "",
    ) -> None:
        """Create a detached session and type ``command`` into it."""
        args = ["new-session", "-d", "-s", name]
        if work_dir:
            args += ["-c", work_dir]
        if window_name:
            args += ["-n", window_name]
        for key, value in sorted((env or {}).items()):
            args += ["-e", f"{key}={value}"]
        result = self._tmux(*args)
        if not result.ok:
            raise TmuxError("new-session", result.stderr)
        logger.debug("Created tmux session %s in %s", name, work_dir or ".")
        if command:
            self.send_keys(name, command)

    def send_keys(self, session: str, keys: str) -> None:
        """Send keys followed by Enter."""
        result = self._tmux("send-keys", "-t", session, keys, "Enter")
        if not result.ok:
            raise TmuxError("send-keys", result.stderr)

    def send_keys_literal(self, session: str, keys: str) -> None:
        """Send keys without interpreting key names and without Enter."""
        result = self._tmux("send-keys", "-t", session, "-l", keys)
        if not result.ok:
            raise TmuxError("send-keys", result.stderr)

    def send_enter(self, session: str) -> None:
        result = self._tmux("send-keys", "-t", session, "Enter")
        if not result.ok:
            raise TmuxError("send-keys", result.stderr)

    def capture_pane(self, session: str, lines: int = 100) -> str:
        result = self._tmux("capture-pane", "-t", session, "-p", "-S", f"-{lines}")
        if not result.ok:
            raise TmuxError("capture-pane", result.stderr)
        return result.stdout

    def wait_for_ready(self, session: str, pattern: str, timeout: float) -> bool:
        """Poll the pane until ``pattern`` appears. Returns False on timeout."""
        if not pattern:
            return True
        deadline = self._clock() + timeout
        while self._clock() < deadline:
            try:
                content = self.capture_pane(session, READY_CAPTURE_LINES)
            except TmuxError:
                # pane may not exist yet
                content = ""
            if pattern in content:
                return True
            self._sleep(READY_POLL_INTERVAL)
        logger.warning("Timed out waiting for %r in tmux session %s", pattern, session)
        return False

    def kill_session(self, session: str) -> None:
        result = self._tmux("kill-session", "-t", session)
        if not result.ok:
            raise TmuxError("kill-session", result.stderr)

    def list_sessions(self) -> list[str]:
        result = self._tmux("list-sessions", "-F", "#{session_name}")
        if not result.ok:
            if is_no_server(result.stderr):
                return []
            raise TmuxError("list-sessions", result.stderr)
        return [line for line in result.stdout.strip().splitlines() if line]

    def list_windows(self, session: str) -> list[Window]:
        result = self._tmux(
            "list-windows", "-t", session, "-F", "#{window_index}:#{window_name}:#{window_id}"
        )
        if not result.ok:
            if is_no_server(result.stderr):
                return []
            raise TmuxError("list-windows", result.stderr)
        windows: list[Window] = []
        for line in result.stdout.strip().splitlines():
            parts = line.split(":", 2)
            if len(parts) != 3:
                continue
            try:
                index = int(parts[0])
            except ValueError:
                continue
            windows.append(Window(index=index, name=parts[1], id=parts[2]))
        return windows
