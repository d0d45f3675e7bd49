"""Unix-socket IPC between short-lived CLI invocations and the daemon.

Protocol: the client writes one JSON request object (a trailing newline is
optional), the server writes one newline-terminated JSON response, and the
connection closes. Request keys are camelCase (``issueID``, ``runID``,
``noEnter``, ``vaultPath``); snake_case keys are accepted too.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from ..backends.base import BackendManager, manager_for_run
from ..errors import DaemonError, OrchError
from ..models import Run, RunRef, SendOptions
from ..store import RunStore
from .paths import is_running, socket_file_path

logger = logging.getLogger(__name__)

READ_TIMEOUT = 5.0
CLIENT_TIMEOUT = 60.0
MAX_REQUEST_BYTES = 1 << 20

ManagerFactory = Callable[[Run], BackendManager]


@dataclass
class SendRequest:
    type: str
    issue_id: str = ""
    run_id: str = ""
    message: str = ""
    no_enter: bool = False
    vault_path: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "issueID": self.issue_id,
            "runID": self.run_id,
            "message": self.message,
        }
        if self.no_enter:
            data["noEnter"] = True
        if self.vault_path:
            data["vaultPath"] = self.vault_path
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SendRequest:
        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            raise ValueError("request must be an object with a string type")
        return cls(
            type=data["type"],
            issue_id=str(data.get("issue_id", data.get("issueID", ""))),
            run_id=str(data.get("run_id", data.get("runID", ""))),
            message=str(data.get("message", "")),
            no_enter=bool(data.get("no_enter", data.get("noEnter", False))),
            vault_path=str(data.get("vault_path", data.get("vaultPath", ""))),
        )


@dataclass
class SendResponse:
    ok: bool
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"ok": self.ok}
        if self.error:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SendResponse:
        return cls(ok=bool(data.get("ok")), error=str(data.get("error") or ""))


def _encode(payload: dict[str, Any]) -> bytes:
    return (json.dumps(payload) + "\n").encode()


async def read_request(reader: asyncio.StreamReader) -> Any:
    """Read until one complete JSON value has arrived.

    Requests are single-line JSON, so a newline or EOF before the value
    decodes means the request is malformed.
    """
    decoder = json.JSONDecoder()
    buf = b""
    while True:
        chunk = await reader.read(4096)
        buf += chunk
        if len(buf) > MAX_REQUEST_BYTES:
            raise ValueError("request too large")
        try:
            value, _ = decoder.raw_decode(buf.decode().lstrip())
            return value
        except ValueError:
            if not chunk or b"\n" in buf.lstrip():
                raise


class SocketServer:
    """Accepts send requests and routes them to the run's backend manager."""

    def __init__(
        self,
        vault: str | Path,
        store: RunStore,
        manager_factory: ManagerFactory = manager_for_run,
        socket_path: Path | None = None,
    ) -> None:
        self.vault = Path(vault)
        self.store = store
        self.manager_factory = manager_factory
        self.socket_path = socket_path or socket_file_path(self.vault)
        self._server: asyncio.AbstractServer | None = None
        self._handlers: set[asyncio.Task[None]] = set()

    async def start(self) -> None:
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        # leftover from a crashed daemon
        self.socket_path.unlink(missing_ok=True)
        self._server = await asyncio.start_unix_server(
            self._on_connect, path=str(self.socket_path), limit=MAX_REQUEST_BYTES
        )
        try:
            os.chmod(self.socket_path, 0o660)
        except OSError as exc:
            logger.warning("Failed to chmod socket: %s", exc)
        logger.info("Socket server listening on %s", self.socket_path)

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        for task in list(self._handlers):
            task.cancel()
        for task in list(self._handlers):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.socket_path.unlink(missing_ok=True)

    async def __aenter__(self) -> SocketServer:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    async def _on_connect(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._handlers.add(task)
        try:
            response = await self._handle(reader)
            writer.write(_encode(response.to_dict()))
            await writer.drain()
        except ConnectionError as exc:
            logger.debug("Connection dropped: %r", exc)
        finally:
            if task is not None:
                self._handlers.discard(task)
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader) -> SendResponse:
        try:
            payload = await asyncio.wait_for(read_request(reader), timeout=READ_TIMEOUT)
            request = SendRequest.from_dict(payload)
        except (asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Failed to decode request: %s", exc)
            return SendResponse(ok=False, error="invalid request")

        match request.type:
            case "send":
                return await self.handle_send(request)
            case _:
                return SendResponse(ok=False, error="unknown request type")

    async def handle_send(self, request: SendRequest) -> SendResponse:
        ref = RunRef(request.issue_id, request.run_id)
        logger.info("Processing send for %s", ref)
        try:
            run = self.store.get_run(ref)
            manager = self.manager_factory(run)
            await manager.send_message(run, request.message, SendOptions(no_enter=request.no_enter))
        except OrchError as exc:
            logger.warning("Send to %s failed: %s", ref, exc)
            return SendResponse(ok=False, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error sending to %s", ref)
            return SendResponse(ok=False, error=str(exc))
        logger.info("Message sent to %s", ref)
        return SendResponse(ok=True)


async def send_via_daemon(
    vault: str | Path,
    ref: RunRef,
    message: str,
    no_enter: bool = False,
    *,
    timeout: float = CLIENT_TIMEOUT,
    socket_path: Path | None = None,
) -> None:
    """Ask the vault's daemon to deliver ``message``. Raises ``DaemonError`` on failure."""
    path = socket_path or socket_file_path(vault)
    request = SendRequest(
        type="send",
        issue_id=ref.issue_id,
        run_id=ref.run_id,
        message=message,
        no_enter=no_enter,
        vault_path=str(vault),
    )
    try:
        async with asyncio.timeout(timeout):
            reader, writer = await asyncio.open_unix_connection(str(path), limit=MAX_REQUEST_BYTES)
            try:
                writer.write(_encode(request.to_dict()))
                await writer.drain()
                line = await reader.readline()
            finally:
                writer.close()
                with contextlib.suppress(ConnectionError):
                    await writer.wait_closed()
    except (OSError, TimeoutError) as exc:
        raise DaemonError(f"failed to reach daemon: {exc}") from exc

    try:
        response = SendResponse.from_dict(json.loads(line))
    except (ValueError, AttributeError) as exc:
        raise DaemonError(f"failed to read response: {exc}") from exc
    if not response.ok:
        raise DaemonError(f"daemon error: {response.error}")


def is_daemon_socket_available(vault: str | Path) -> bool:
    """True when the daemon process is alive and its socket file exists."""
    return is_running(vault) and socket_file_path(vault).exists()
