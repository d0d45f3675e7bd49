"""Small rendering helpers shared by CLI commands."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.markup import escape

from ..models import Status
from .theme import STATUS_COLORS, THEME


def _markup(text: str, color: str) -> str:
    """Wrap text in Rich markup with the given color, escaping special chars."""
    return f"[{color}]{escape(text)}[/{color}]"


def status_markup(status: Status) -> str:
    return _markup(str(status), STATUS_COLORS.get(status, THEME.primary))


def format_age(started_at: datetime, now: datetime | None = None) -> str:
    """Compact elapsed time: ``42s``, ``3m5s``, ``2h14m``."""
    now = now or datetime.now(timezone.utc)
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    secs = max(0, int((now - started_at).total_seconds()))
    if secs < 60:
        return f"{secs}s"
    if secs < 3600:
        return f"{secs // 60}m{secs % 60}s"
    return f"{secs // 3600}h{(secs % 3600) // 60}m"
