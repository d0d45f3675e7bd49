"""Server-sent event subscription for the opencode ``/event`` stream."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import httpx

from ..runtime.cancellation import CancellationToken
from .models import Event

logger = logging.getLogger(__name__)

EVENT_QUEUE_SIZE = 100
CANCEL_POLL_INTERVAL = 0.1

_END: Any = object()


class EventSubscription:
    """Async-iterable stream of decoded events.

    A background task reads ``data: <json>`` lines into a bounded queue.
    Malformed records are skipped. ``close()`` (or the cancellation token
    firing) stops the reader and closes the HTTP stream and the queue together;
    so does the server ending the stream.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        response: httpx.Response,
        cancel: CancellationToken | None = None,
    ) -> None:
        self._client = client
        self._response = response
        self._cancel = cancel
        self.queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)
        self._reader: asyncio.Task[None] | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._closed = False

    def start(self) -> None:
        self._reader = asyncio.create_task(self._pump())
        if self._cancel is not None:
            self._watcher = asyncio.create_task(self._watch_cancel())

    @property
    def closed(self) -> bool:
        return self._closed

    async def _pump(self) -> None:
        try:
            async for line in self._response.aiter_lines():
                line = line.strip()
                if not line.startswith("data:"):
                    continue
                data = line[len("data:") :].strip()
                try:
                    event = Event.from_json(data)
                except ValueError:
                    logger.debug("Skipping malformed event: %s", data[:200])
                    continue
                await self.queue.put(event)
        except (httpx.HTTPError, httpx.StreamError) as exc:
            logger.debug("Event stream ended: %s", exc)
        # server closed the stream: release the connection, then wait for
        # room so the end marker is never dropped
        await self._release()
        await self.queue.put(_END)

    async def _watch_cancel(self) -> None:
        assert self._cancel is not None
        while not self._cancel.is_cancelled():
            await asyncio.sleep(CANCEL_POLL_INTERVAL)
        await self.close()

    @staticmethod
    async def _stop(task: asyncio.Task[None] | None) -> None:
        if task is None or task is asyncio.current_task() or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _release(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stop(self._watcher)
        await self._response.aclose()
        await self._client.aclose()

    async def close(self) -> None:
        await self._stop(self._reader)
        if self._closed:
            return
        await self._release()
        # wake a consumer blocked on get()
        with contextlib.suppress(asyncio.QueueFull):
            self.queue.put_nowait(_END)

    def __aiter__(self) -> EventSubscription:
        return self

    async def __anext__(self) -> Event:
        if self._closed and self.queue.empty():
            raise StopAsyncIteration
        item = await self.queue.get()
        if item is _END:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> EventSubscription:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
