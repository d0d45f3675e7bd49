"""Error types shared across adapters, backends, and the daemon."""

from __future__ import annotations


class OrchError(Exception):
    """Base class for all orch errors."""


class ConfigurationError(OrchError, ValueError):
    """Raised when a requested operation is missing required configuration.

    Never retried; the message is surfaced to the caller verbatim.
    """


class CustomCommandMissingError(ConfigurationError):
    """Raised when the custom agent type is launched without a command."""

    def __init__(self) -> None:
        super().__init__("custom agent requires --agent-cmd")


class HeadlessConfigError(ConfigurationError):
    """Raised when a headless run lacks the port or remote session id needed to send."""

    def __init__(self, run_ref: str, missing: str) -> None:
        self.run_ref = run_ref
        self.missing = missing
        super().__init__(f"opencode run {run_ref} missing {missing}")


class UnknownAgentError(OrchError, LookupError):
    """Raised for agent identifiers outside the known set."""

    def __init__(self, agent: str) -> None:
        self.agent = agent
        super().__init__(f"unknown agent type: {agent}")


class RunNotFoundError(OrchError, LookupError):
    """Raised when the store has no run for a reference."""

    def __init__(self, ref: str) -> None:
        self.ref = ref
        super().__init__(f"run not found: {ref}")


class SessionNotFoundError(OrchError):
    """Raised when the backend session behind a run has disappeared."""

    def __init__(self, session_name: str) -> None:
        self.session_name = session_name
        super().__init__(f"session {session_name} not found (run may not be active)")


class AgentNotAvailableError(OrchError):
    """Raised when an agent binary or server cannot be reached."""


class HeadlessRequestError(OrchError):
    """Raised for failed calls to the headless server (transport or non-success status)."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class OperationCancelledError(OrchError):
    """Raised when a cancellation token fires during a network-bound operation."""

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(f"operation cancelled: {reason or 'requested'}")


class DaemonError(OrchError):
    """Raised by daemon clients when the daemon rejects or fails a request."""


class TmuxError(OrchError):
    """Raised when a tmux command exits non-zero."""

    def __init__(self, action: str, stderr: str = "") -> None:
        self.action = action
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"tmux {action} failed{detail}")
