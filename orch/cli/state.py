"""Shared CLI state: console, app, common options."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from ..config import OrchConfig
from ..errors import ConfigurationError
from ..store import SqliteRunStore

load_dotenv()

# Rich console for all output
console = Console()

VaultOption = Annotated[
    Path,
    typer.Option("--vault", envvar="ORCH_VAULT", help="Vault directory holding .orch/"),
]

app = typer.Typer(
    name="orch",
    help="Supervise AI coding-agent sessions running in tmux or as headless servers.",
    epilog=(
        "Examples:\n"
        "  orch daemon-start\n"
        '  orch run ISSUE-12 --agent codex -p "fix the flaky login test"\n'
        "  orch ps\n"
        '  orch send ISSUE-12 "rebase on main and rerun the tests"\n'
        "  orch capture 3fa9c1"
    ),
    add_completion=False,
    no_args_is_help=True,
)


def load_config(vault: Path) -> OrchConfig:
    return OrchConfig.load(vault)


def open_store(config: OrchConfig) -> SqliteRunStore:
    if config.db_path is None:
        raise ConfigurationError("no run database configured for this vault")
    return SqliteRunStore(config.db_path)
