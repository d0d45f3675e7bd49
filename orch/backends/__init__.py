"""Backend managers: one per way an agent session can be hosted."""

from .api import HeadlessManager, format_transcript
from .base import BackendManager, manager_for_run
from .terminal import TmuxManager

__all__ = ["BackendManager", "HeadlessManager", "TmuxManager", "format_transcript", "manager_for_run"]
