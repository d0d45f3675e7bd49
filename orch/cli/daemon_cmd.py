"""Daemon lifecycle commands: daemon, daemon-start, daemon-stop."""

from __future__ import annotations

from pathlib import Path

import typer

from ..daemon import daemon as daemon_mod
from ..daemon.paths import is_stale_binary, log_file_path, running_pid
from ..errors import ConfigurationError
from .formatting import _markup
from .state import VaultOption, app, console, load_config
from .theme import THEME


@app.command()
def daemon(vault: VaultOption = Path(".")) -> None:
    """Run the monitor daemon in the foreground."""
    try:
        config = load_config(vault)
    except ConfigurationError as e:
        console.print(_markup(str(e), THEME.error))
        raise typer.Exit(1) from e
    pid = running_pid(config.vault_path)
    if pid is not None:
        console.print(_markup(f"Daemon already running (pid {pid})", THEME.warning))
        raise typer.Exit(1)
    daemon_mod.run_foreground(config)


@app.command("daemon-start")
def daemon_start(vault: VaultOption = Path(".")) -> None:
    """Start the daemon in the background if it is not running."""
    existing = running_pid(vault)
    if existing is not None:
        if is_stale_binary(vault):
            console.print(
                _markup(
                    f"Daemon running (pid {existing}) on outdated code; run daemon-stop then daemon-start",
                    THEME.warning,
                )
            )
        else:
            console.print(f"[dim]Daemon already running (pid {existing})[/dim]")
        return
    pid = daemon_mod.start_in_background(vault)
    console.print(_markup(f"Daemon started (pid {pid})", THEME.success))
    console.print(_markup(f"Log: {log_file_path(vault)}", THEME.muted))


@app.command("daemon-stop")
def daemon_stop(vault: VaultOption = Path(".")) -> None:
    """Stop the background daemon."""
    if not daemon_mod.kill(vault):
        console.print("[dim]Daemon not running[/dim]")
        return
    console.print(_markup("Daemon stopped", THEME.success))
