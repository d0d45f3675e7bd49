"""Exponential-backoff retry for headless server calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from ..errors import OperationCancelledError
from ..runtime.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INITIAL_DELAY = 0.5
DEFAULT_MAX_DELAY = 10.0


def _check(cancel: CancellationToken | None) -> None:
    if cancel is not None and cancel.is_cancelled():
        raise OperationCancelledError(cancel.reason)


async def retry(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    initial_delay: float | None = None,
    max_delay: float = DEFAULT_MAX_DELAY,
    cancel: CancellationToken | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fn`` up to ``attempts`` times, doubling the delay between failures.

    Returns the first successful result, or re-raises the last error once
    attempts are exhausted. A cancelled token raises ``OperationCancelledError``
    instead, and the backoff sleep is clipped to the token's deadline.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    delay = DEFAULT_INITIAL_DELAY if initial_delay is None else initial_delay
    for attempt in range(1, attempts + 1):
        _check(cancel)
        try:
            return await fn()
        except OperationCancelledError:
            raise
        except Exception as exc:
            _check(cancel)
            if attempt == attempts:
                logger.debug("Giving up after %d attempts: %s", attempts, exc)
                raise
            logger.debug("Attempt %d/%d failed, retrying in %.1fs: %s", attempt, attempts, delay, exc)

        wait = delay
        if cancel is not None:
            remaining = cancel.remaining()
            if remaining is not None:
                wait = min(wait, remaining)
        await sleep(wait)
        _check(cancel)
        delay = min(delay * 2, max_delay)

    raise AssertionError("unreachable")
