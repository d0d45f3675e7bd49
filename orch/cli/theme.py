"""Centralized CLI theme tokens."""

from dataclasses import dataclass

from ..models import Status


@dataclass(frozen=True)
class CliTheme:
    """Semantic Rich color tokens for CLI output."""

    primary: str = "#E6EDF3"
    muted: str = "#7F848E"
    accent: str = "#61AFEF"
    success: str = "#98C379"
    warning: str = "#E5C07B"
    error: str = "#E06C75"


THEME = CliTheme()

STATUS_COLORS: dict[Status, str] = {
    Status.QUEUED: THEME.muted,
    Status.BOOTING: THEME.accent,
    Status.RUNNING: THEME.success,
    Status.BLOCKED: THEME.warning,
    Status.BLOCKED_API: THEME.warning,
    Status.PR_OPEN: THEME.accent,
    Status.DONE: THEME.success,
    Status.FAILED: THEME.error,
    Status.CANCELED: THEME.muted,
    Status.UNKNOWN: THEME.muted,
}
