"""Cancellation primitives for network-bound and polling operations."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class CancellationToken:
    """Cooperative cancellation token with an optional monotonic deadline."""

    reason: str | None = None
    cancelled_at: datetime | None = None
    deadline: float | None = None
    _cancelled: bool = field(default=False, repr=False)

    @classmethod
    def with_timeout(cls, seconds: float) -> CancellationToken:
        """Create a token that reports cancelled once ``seconds`` have elapsed."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, reason: str = "requested") -> None:
        """Mark token as cancelled (idempotent)."""
        if self._cancelled:
            return
        self._cancelled = True
        self.reason = reason
        self.cancelled_at = datetime.now(timezone.utc)

    def is_cancelled(self) -> bool:
        """Return True if cancellation was requested or the deadline passed."""
        if not self._cancelled and self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel("deadline exceeded")
        return self._cancelled

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when the token has no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())
