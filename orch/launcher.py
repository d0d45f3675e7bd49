"""Starting an agent for a run and delivering its first prompt."""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Callable, Iterable

from .agents.base import AgentAdapter
from .agents.registry import get_adapter
from .config import OrchConfig
from .errors import AgentNotAvailableError, HeadlessRequestError
from .headless.client import OpenCodeClient
from .headless.models import parse_model
from .models import InjectionMethod, LaunchConfig, Run, Status
from .store import RunStore
from .tmux import TmuxClient

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 0.5

ClientFactory = Callable[[int], OpenCodeClient]


def find_available_port(ports: Iterable[int], host: str = "127.0.0.1") -> int | None:
    """First port in ``ports`` that can be bound on ``host``."""
    for port in ports:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((host, port))
            except OSError:
                continue
            return port
    return None


class Launcher:
    """Launches runs inside tmux and injects the prompt the way the adapter asks for."""

    def __init__(
        self,
        store: RunStore,
        tmux: TmuxClient | None = None,
        client_factory: ClientFactory | None = None,
        settings: OrchConfig | None = None,
        port_finder: Callable[[Iterable[int]], int | None] = find_available_port,
    ) -> None:
        self.store = store
        self.tmux = tmux or TmuxClient()
        self.client_factory = client_factory or OpenCodeClient
        self.settings = settings or OrchConfig()
        self.port_finder = port_finder

    async def launch(self, run: Run, config: LaunchConfig) -> Run:
        """Start the agent for ``run``. On any failure the run is marked failed and the error re-raised."""
        ref = run.ref()
        adapter = get_adapter(config.agent_type, runner=self.tmux.runner)
        try:
            self.store.update_status(ref, Status.BOOTING)
            await self._launch(run, config, adapter)
            self.store.update_status(ref, Status.RUNNING)
        except Exception as exc:
            logger.warning("%s: launch failed: %s", ref, exc)
            self.store.record_artifact(ref, "error", message=str(exc))
            self.store.update_status(ref, Status.FAILED)
            raise
        return self.store.get_run(ref)

    async def _launch(self, run: Run, config: LaunchConfig, adapter: AgentAdapter) -> None:
        ref = run.ref()
        session = config.session_name or run.session_name
        reuse_server = False

        if adapter.prompt_injection() == InjectionMethod.HTTP:
            port = await self.find_running_server()
            if port is not None:
                reuse_server = True
                logger.info("%s: reusing opencode server on port %d", ref, port)
            else:
                port = self.port_finder(self.settings.opencode_port_range)
                if port is None:
                    raise AgentNotAvailableError("no available port found for opencode server")
            config = config.with_port(port)

        if not reuse_server:
            command = adapter.launch_command(config)
            env = {**config.env(), **adapter.extra_env()}
            await asyncio.to_thread(
                self.tmux.new_session, session, work_dir=config.working_dir, command=command, env=env
            )
            self.store.record_artifact(ref, "session", tmux_session=session)

        match adapter.prompt_injection():
            case InjectionMethod.TMUX:
                await self._inject_via_tmux(session, config, adapter)
            case InjectionMethod.HTTP:
                await self._inject_via_http(run, config)
            case InjectionMethod.ARG:
                pass

        if not reuse_server:
            windows = await asyncio.to_thread(self.tmux.list_windows, session)
            for window in windows:
                if window.index == 0:
                    self.store.record_artifact(ref, "window", id=window.id)
                    break

    async def find_running_server(self) -> int | None:
        for port in self.settings.opencode_port_range:
            client = self.client_factory(port)
            try:
                async with asyncio.timeout(PROBE_TIMEOUT):
                    if await client.is_server_running():
                        return port
            except TimeoutError:
                continue
        return None

    async def _inject_via_tmux(self, session: str, config: LaunchConfig, adapter: AgentAdapter) -> None:
        if not config.prompt:
            return
        pattern = adapter.ready_pattern()
        if pattern:
            ready = await asyncio.to_thread(
                self.tmux.wait_for_ready, session, pattern, self.settings.ready_timeout
            )
            if not ready:
                raise AgentNotAvailableError(f"agent did not become ready (pattern: {pattern!r})")
        await asyncio.to_thread(self.tmux.send_keys, session, config.prompt)

    async def _inject_via_http(self, run: Run, config: LaunchConfig) -> None:
        ref = run.ref()
        client = self.client_factory(config.port)
        await client.wait_for_healthy(self.settings.health_timeout)
        self.store.record_artifact(ref, "session", server_port=str(config.port))

        model, variant = config.model, config.model_variant
        if not model:
            try:
                model, variant = await client.get_agent_model(directory=config.working_dir)
            except HeadlessRequestError as exc:
                logger.debug("%s: could not read server model: %s", ref, exc)
        if model:
            self.store.record_artifact(ref, "session", model=model, model_variant=variant)

        session = await client.create_session(title=str(ref), directory=config.working_dir)
        self.store.record_artifact(ref, "session", session_id=session.id)
        logger.info("%s: created opencode session %s", ref, session.id)

        if config.prompt:
            await client.send_message_async(
                session.id,
                config.prompt,
                directory=config.working_dir,
                model=parse_model(config.model),
                variant=config.model_variant,
            )
