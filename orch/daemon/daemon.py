"""Background daemon: polls run status and serves the IPC socket."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

from ..backends.base import manager_for_run
from ..config import OrchConfig
from ..models import Run
from ..store import RunStore, SqliteRunStore
from ..tmux import TmuxClient
from .monitor import RunMonitor
from .paths import (
    daemon_command,
    ensure_orch_dir,
    is_stale_binary,
    log_file_path,
    remove_pid,
    running_pid,
    write_metadata,
    write_pid,
)
from .socket import ManagerFactory, SocketServer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
STOP_TIMEOUT = 5.0


def configure_logging(vault: str | Path, level: int = logging.INFO) -> logging.Handler:
    """Send ``orch`` logs to ``<vault>/.orch/daemon.log``."""
    ensure_orch_dir(vault)
    handler = logging.FileHandler(log_file_path(vault), encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("orch")
    root.addHandler(handler)
    root.setLevel(level)
    return handler


class Daemon:
    """Owns the poll loop, the socket server and the PID file for one vault."""

    def __init__(
        self,
        config: OrchConfig,
        store: RunStore | None = None,
        manager_factory: ManagerFactory | None = None,
    ) -> None:
        self.config = config
        self.vault = config.vault_path
        self.store = store or SqliteRunStore(config.db_path)
        if manager_factory is None:
            tmux = TmuxClient()

            def default_factory(run: Run):
                return manager_for_run(run, tmux=tmux)

            manager_factory = default_factory
        self.manager_factory = manager_factory
        self.monitor = RunMonitor(self.store, self.manager_factory, dead_checks=config.dead_checks)
        self.socket = SocketServer(self.vault, self.store, self.manager_factory)
        self._stop = asyncio.Event()
        self._stale_logged = False

    def stop(self) -> None:
        self._stop.set()

    async def run(self) -> None:
        ensure_orch_dir(self.vault)
        write_pid(self.vault)
        meta = write_metadata(self.vault)
        logger.info("Daemon started (pid=%d, vault=%s, code=%s)", meta.pid, self.vault, meta.exec_path)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._on_signal, sig)

        try:
            await self.socket.start()
            while not self._stop.is_set():
                await self.monitor.monitor_all()
                self._check_stale()
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.config.poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await self.socket.stop()
            remove_pid(self.vault)
            logger.info("Daemon stopped")

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down", sig.name)
        self.stop()

    def _check_stale(self) -> None:
        if self._stale_logged:
            return
        if is_stale_binary(self.vault):
            logger.warning("orch code changed since the daemon started; restart it to pick up changes")
            self._stale_logged = True


def start_in_background(vault: str | Path) -> int:
    """Spawn a detached daemon for ``vault`` unless one is already running. Returns its PID."""
    existing = running_pid(vault)
    if existing is not None:
        return existing
    ensure_orch_dir(vault)
    with open(log_file_path(vault), "a", encoding="utf-8") as log:
        proc = subprocess.Popen(
            daemon_command(vault),
            stdin=subprocess.DEVNULL,
            stdout=log,
            stderr=log,
            start_new_session=True,
            env=os.environ.copy(),
        )
    logger.info("Started daemon for %s (pid=%d)", vault, proc.pid)
    return proc.pid


def kill(vault: str | Path, timeout: float = STOP_TIMEOUT) -> bool:
    """SIGTERM the vault's daemon and wait for it to exit. False if none was running."""
    pid = running_pid(vault)
    if pid is None:
        return False
    os.kill(pid, signal.SIGTERM)
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if running_pid(vault) is None:
            return True
        time.sleep(0.1)
    logger.warning("Daemon pid=%d did not exit within %.0fs", pid, timeout)
    return True


def run_foreground(config: OrchConfig) -> None:
    configure_logging(config.vault_path)
    if sys.platform == "win32":
        raise RuntimeError("the orch daemon requires a POSIX platform")
    asyncio.run(Daemon(config).run())
