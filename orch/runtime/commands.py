"""Command execution seam for everything that starts a subprocess."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)

RC_NOT_FOUND = 127
RC_TIMEOUT = 124


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of one command invocation."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Runs an argv list and returns its captured output."""

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult: ...


class SubprocessRunner:
    """CommandRunner backed by ``subprocess.run``.

    Missing binaries and timeouts are reported as return codes (127 and 124,
    shell conventions) instead of exceptions so callers only branch on ``ok``.
    """

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        argv = list(args)
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=env,
                check=False,
            )
        except FileNotFoundError as exc:
            logger.debug("Command not found: %s (%s)", argv[0] if argv else "", exc)
            return CommandResult(returncode=RC_NOT_FOUND, stderr=str(exc))
        except subprocess.TimeoutExpired:
            logger.debug("Command timed out after %ss: %s", timeout, argv)
            return CommandResult(returncode=RC_TIMEOUT, stderr=f"timed out after {timeout}s")
        return CommandResult(returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)
