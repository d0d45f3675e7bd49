"""CLI package for orch."""

from .state import app

# Import subcommand modules so their @app.command() decorators register
from . import daemon_cmd as _daemon_cmd  # noqa: F401
from . import runs as _runs  # noqa: F401


def cli() -> None:
    """CLI entrypoint."""
    app(prog_name="orch")


__all__ = ["app", "cli"]
