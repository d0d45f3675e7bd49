"""Async HTTP client for the opencode server API."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from ..errors import AgentNotAvailableError, HeadlessRequestError, SessionNotFoundError
from ..runtime.cancellation import CancellationToken
from .events import EventSubscription
from .models import (
    HealthResponse,
    Message,
    ModelRef,
    ProjectInfo,
    PromptRequest,
    ProvidersResponse,
    Session,
    SessionStatus,
    parse_session_status,
)
from .retry import retry

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_TIMEOUT = 30.0
DIRECTORY_HEADER = "X-OpenCode-Directory"

CREATE_SESSION_ATTEMPTS = 5
SEND_ASYNC_ATTEMPTS = 3
HEALTH_POLL_INTERVAL = 0.5

_UNSET: Any = object()


class OpenCodeClient:
    """One client per server port. Each call opens a short-lived ``httpx.AsyncClient``."""

    def __init__(
        self,
        port: int,
        host: str = DEFAULT_HOST,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.port = port
        self.base_url = f"http://{host}:{port}"
        self.timeout = timeout
        self._transport = transport

    def _client(self, timeout: float | None | Any = _UNSET) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout if timeout is _UNSET else timeout),
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        action: str,
        directory: str = "",
        json: Any = None,
        ok: tuple[int, ...] = (200,),
        timeout: float | None | Any = _UNSET,
    ) -> httpx.Response:
        headers = {DIRECTORY_HEADER: directory} if directory else None
        try:
            async with self._client(timeout) as client:
                resp = await client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise HeadlessRequestError(f"{action} failed: {exc}") from exc
        if resp.status_code not in ok:
            raise HeadlessRequestError(
                f"{action} returned status {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        return resp

    @staticmethod
    def _json(resp: httpx.Response, action: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise HeadlessRequestError(f"decoding {action} response: {exc}") from exc

    # -- server ------------------------------------------------------------

    async def health(self) -> HealthResponse:
        resp = await self._request("GET", "/global/health", action="health check")
        return HealthResponse.from_dict(self._json(resp, "health"))

    async def is_server_running(self) -> bool:
        try:
            return (await self.health()).healthy
        except HeadlessRequestError:
            return False

    async def get_current_project(self) -> ProjectInfo:
        resp = await self._request("GET", "/project/current", action="get project")
        return ProjectInfo.from_dict(self._json(resp, "project"))

    async def is_server_running_for_worktree(self, worktree_path: str) -> bool:
        """True when the server is healthy and serving ``worktree_path``."""
        if not await self.is_server_running():
            return False
        try:
            project = await self.get_current_project()
        except HeadlessRequestError:
            return False
        return project.worktree == worktree_path

    async def wait_for_healthy(
        self, timeout: float, cancel: CancellationToken | None = None
    ) -> None:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if cancel is not None and cancel.is_cancelled():
                break
            if await self.is_server_running():
                return
            await asyncio.sleep(HEALTH_POLL_INTERVAL)
        raise AgentNotAvailableError(
            f"timeout waiting for opencode server on port {self.port} to be healthy"
        )

    # -- sessions ----------------------------------------------------------

    async def create_session(
        self, title: str = "", directory: str = "", cancel: CancellationToken | None = None
    ) -> Session:
        body = {"title": title} if title else {}

        async def once() -> Session:
            resp = await self._request(
                "POST",
                "/session",
                action="create session",
                directory=directory,
                json=body,
                ok=(200, 201),
            )
            return Session.from_dict(self._json(resp, "session"))

        return await retry(once, attempts=CREATE_SESSION_ATTEMPTS, cancel=cancel)

    async def list_sessions(self, directory: str = "") -> list[Session]:
        resp = await self._request("GET", "/session", action="list sessions", directory=directory)
        return [Session.from_dict(s) for s in self._json(resp, "sessions") or []]

    async def get_session(self, session_id: str, directory: str = "") -> Session:
        try:
            resp = await self._request(
                "GET", f"/session/{session_id}", action="get session", directory=directory
            )
        except HeadlessRequestError as exc:
            if exc.status_code == 404:
                raise SessionNotFoundError(session_id) from exc
            raise
        return Session.from_dict(self._json(resp, "session"))

    async def get_session_ids(self) -> set[str]:
        return {s.id for s in await self.list_sessions()}

    async def get_messages(self, session_id: str, directory: str = "") -> list[Message]:
        resp = await self._request(
            "GET", f"/session/{session_id}/message", action="get messages", directory=directory
        )
        return [Message.from_dict(m) for m in self._json(resp, "messages") or []]

    # -- prompts -----------------------------------------------------------

    async def send_message(self, session_id: str, text: str) -> Message:
        """Send a prompt and wait for the assistant reply. No client timeout applies."""
        resp = await self._request(
            "POST",
            f"/session/{session_id}/message",
            action="send message",
            json=PromptRequest.text(text).to_payload(),
            timeout=None,
        )
        return Message.from_dict(self._json(resp, "message"))

    async def send_message_async(
        self,
        session_id: str,
        text: str,
        directory: str = "",
        model: ModelRef | None = None,
        variant: str = "",
        cancel: CancellationToken | None = None,
    ) -> None:
        """Fire-and-forget prompt via ``/prompt_async``; the server replies 204."""
        payload = PromptRequest.text(text, model=model, variant=variant).to_payload()

        async def once() -> None:
            await self._request(
                "POST",
                f"/session/{session_id}/prompt_async",
                action="send async message",
                directory=directory,
                json=payload,
                ok=(200, 204),
            )

        await retry(once, attempts=SEND_ASYNC_ATTEMPTS, cancel=cancel)

    async def send_message_prompt(
        self,
        session_id: str,
        text: str,
        directory: str = "",
        cancel: CancellationToken | None = None,
    ) -> None:
        """Queue a follow-up prompt. Busy sessions pick it up after the current turn."""
        await self.send_message_async(session_id, text, directory=directory, cancel=cancel)

    async def abort(self, session_id: str) -> None:
        await self._request("POST", f"/session/{session_id}/abort", action="abort")

    # -- status ------------------------------------------------------------

    async def get_session_status(self, directory: str = "") -> dict[str, str]:
        resp = await self._request(
            "GET", "/session/status", action="get session status", directory=directory
        )
        try:
            return parse_session_status(resp.text)
        except ValueError as exc:
            raise HeadlessRequestError(str(exc), status_code=resp.status_code, body=resp.text) from exc

    async def get_single_session_status(
        self, session_id: str, directory: str = ""
    ) -> tuple[str, bool]:
        """Return ``(status, found)``. Sessions missing from the map count as idle."""
        statuses = await self.get_session_status(directory)
        if session_id not in statuses:
            return SessionStatus.IDLE, False
        return statuses[session_id], True

    # -- configuration -----------------------------------------------------

    async def get_providers(self) -> ProvidersResponse:
        resp = await self._request("GET", "/provider", action="list providers")
        return ProvidersResponse.from_dict(self._json(resp, "providers"))

    async def get_config(self, directory: str = "") -> dict[str, Any]:
        resp = await self._request("GET", "/config", action="get config", directory=directory)
        return self._json(resp, "config") or {}

    async def get_agent_model(
        self, agent: str = "build", directory: str = ""
    ) -> tuple[str, str]:
        """Return ``(model, variant)`` for an opencode agent, falling back to the global model."""
        config = await self.get_config(directory)
        agent_config = (config.get("agent") or {}).get(agent) or {}
        model = agent_config.get("model") or config.get("model") or ""
        variant = agent_config.get("variant") or ""
        return model, variant

    # -- events ------------------------------------------------------------

    async def subscribe_events(self, cancel: CancellationToken | None = None) -> EventSubscription:
        """Open ``/event`` and start pumping decoded events into a bounded queue."""
        client = self._client(None)
        try:
            request = client.build_request("GET", "/event", headers={"Accept": "text/event-stream"})
            resp = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            raise HeadlessRequestError(f"subscribing to events failed: {exc}") from exc
        if resp.status_code != 200:
            await resp.aclose()
            await client.aclose()
            raise HeadlessRequestError(
                f"events subscription returned status {resp.status_code}",
                status_code=resp.status_code,
            )
        subscription = EventSubscription(client, resp, cancel=cancel)
        subscription.start()
        return subscription
