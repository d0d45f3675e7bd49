"""Run commands: run, ps, send, capture, agents."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from ..agents.display import agent_display_name
from ..agents.registry import get_adapter, known_models
from ..backends.base import manager_for_run
from ..config import OrchConfig
from ..daemon.socket import is_daemon_socket_available, send_via_daemon
from ..errors import OrchError
from ..launcher import Launcher
from ..models import (
    AgentType,
    LaunchConfig,
    Run,
    SendOptions,
    Status,
    generate_run_id,
    generate_tmux_session,
    parse_agent_type,
)
from ..store import SqliteRunStore, resolve_run
from .formatting import _markup, format_age, status_markup
from .state import VaultOption, app, console, load_config, open_store
from .theme import THEME


def _fail(exc: Exception) -> typer.Exit:
    console.print(_markup(f"Error: {exc}", THEME.error))
    return typer.Exit(1)


def _open(vault: Path) -> tuple[OrchConfig, SqliteRunStore]:
    try:
        config = load_config(vault)
        return config, open_store(config)
    except OrchError as e:
        raise _fail(e) from e


@app.command()
def run(
    issue_id: Annotated[str, typer.Argument(help="Issue to work on")],
    vault: VaultOption = Path("."),
    agent: Annotated[
        str, typer.Option("--agent", help="claude, codex, gemini, opencode or custom")
    ] = AgentType.CLAUDE.value,
    agent_cmd: Annotated[
        str, typer.Option("--agent-cmd", help="Command line for --agent custom")
    ] = "",
    prompt: Annotated[str, typer.Option("--prompt", "-p", help="First prompt for the agent")] = "",
    workdir: Annotated[
        str | None, typer.Option("--workdir", help="Directory the agent runs in (default: cwd)")
    ] = None,
    run_id: Annotated[str, typer.Option("--run-id", help="Run id (default: timestamp)")] = "",
    branch: Annotated[str, typer.Option("--branch", help="Branch recorded for the run")] = "",
    profile: Annotated[str, typer.Option("--profile", help="Agent profile")] = "",
    model: Annotated[str, typer.Option("--model", "-m", help="Model name")] = "",
    model_variant: Annotated[
        str, typer.Option("--model-variant", help="Model variant or reasoning effort")
    ] = "",
) -> None:
    """Start an agent on an issue in a new tmux session."""
    config, store = _open(vault)
    work_dir = str(Path(workdir).resolve() if workdir else Path.cwd())
    try:
        agent_type = parse_agent_type(agent)
        run_id = run_id or generate_run_id()
        new_run = Run(
            issue_id=issue_id,
            run_id=run_id,
            agent=agent_type,
            tmux_session=generate_tmux_session(issue_id, run_id),
            worktree_path=work_dir,
            branch=branch,
            model=model,
            model_variant=model_variant,
        )
        store.save_run(new_run)
        launch_config = LaunchConfig(
            agent_type=agent_type,
            working_dir=work_dir,
            issue_id=issue_id,
            run_id=run_id,
            vault_path=str(config.vault_path.resolve()),
            branch=branch,
            prompt=prompt,
            custom_cmd=agent_cmd,
            session_name=new_run.session_name,
            profile=profile,
            model=model,
            model_variant=model_variant,
        )
        launched = asyncio.run(Launcher(store, settings=config).launch(new_run, launch_config))
    except OrchError as e:
        raise _fail(e) from e
    console.print(
        f"{_markup(launched.short_id, THEME.accent)} {launched.ref()} "
        f"{status_markup(launched.status)} tmux: {launched.session_name}"
    )


@app.command()
def ps(
    vault: VaultOption = Path("."),
    all_runs: Annotated[bool, typer.Option("--all", "-a", help="Include finished runs")] = False,
) -> None:
    """List runs and their status."""
    _, store = _open(vault)
    statuses = None if all_runs else [s for s in Status if not s.is_terminal]
    runs = store.list_runs(statuses)
    if not runs:
        console.print("[dim]No runs[/dim]")
        raise typer.Exit(0)

    table = Table(box=None, header_style=THEME.muted, pad_edge=False)
    for column in ("ID", "RUN", "AGENT", "STATUS", "AGE", "PR"):
        table.add_column(column)
    for run in runs:
        table.add_row(
            _markup(run.short_id, THEME.accent),
            str(run.ref()),
            agent_display_name(str(run.agent), run.model, run.model_variant),
            status_markup(run.status),
            format_age(run.started_at),
            run.pr_url or "-",
        )
    console.print(table)


@app.command()
def send(
    run_ref: Annotated[str, typer.Argument(help="ISSUE#RUN, ISSUE (latest run) or short id")],
    message: Annotated[str, typer.Argument(help="Message to inject")],
    vault: VaultOption = Path("."),
    no_enter: Annotated[
        bool, typer.Option("--no-enter", help="Type the message without pressing Enter")
    ] = False,
) -> None:
    """Send a follow-up message to a running agent."""
    config, store = _open(vault)
    try:
        run = resolve_run(store, run_ref)
        if is_daemon_socket_available(config.vault_path):
            asyncio.run(send_via_daemon(config.vault_path, run.ref(), message, no_enter))
        else:
            manager = manager_for_run(run)
            asyncio.run(manager.send_message(run, message, SendOptions(no_enter=no_enter)))
    except OrchError as e:
        raise _fail(e) from e
    console.print(_markup(f"Sent to {run.ref()}", THEME.success))


@app.command()
def capture(
    run_ref: Annotated[str, typer.Argument(help="ISSUE#RUN, ISSUE (latest run) or short id")],
    vault: VaultOption = Path("."),
) -> None:
    """Print the recent output of a run."""
    _, store = _open(vault)
    try:
        run = resolve_run(store, run_ref)
        output = asyncio.run(manager_for_run(run).capture_output(run))
    except (OrchError, TimeoutError) as e:
        raise _fail(e) from e
    console.print(output, markup=False, highlight=False)


@app.command()
def agents() -> None:
    """Show which agent CLIs are installed."""
    for agent_type in AgentType:
        adapter = get_adapter(agent_type)
        available = adapter.is_available()
        mark = _markup("ok", THEME.success) if available else _markup("missing", THEME.error)
        models = ", ".join(known_models(agent_type)[:4])
        console.print(f"  {agent_type.value:<10} {mark}  {_markup(models, THEME.muted)}")
