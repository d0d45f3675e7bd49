"""Runtime primitives shared by backends and the daemon."""

from .cancellation import CancellationToken
from .commands import CommandResult, CommandRunner, SubprocessRunner

__all__ = ["CancellationToken", "CommandResult", "CommandRunner", "SubprocessRunner"]
