"""Orchestrator configuration loaded from ``<vault>/.orch/config.yaml``."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

CONFIG_FILENAME = "config.yaml"
ORCH_DIRNAME = ".orch"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class OrchConfig:
    """Daemon and launcher tuning.

    Defaults come from ``ORCH_*`` environment variables; values in the YAML
    file fill in whatever the environment leaves unset. Environment always
    wins so a one-off ``ORCH_POLL_INTERVAL=1 orch daemon`` works without
    editing the file.
    """

    vault_path: Path = field(default_factory=lambda: Path(os.getenv("ORCH_VAULT", ".")))
    poll_interval: float = field(default_factory=lambda: _env_float("ORCH_POLL_INTERVAL", 5.0))
    capture_lines: int = field(default_factory=lambda: _env_int("ORCH_CAPTURE_LINES", 100))
    opencode_base_port: int = field(
        default_factory=lambda: _env_int("ORCH_OPENCODE_PORT", 4096)
    )
    opencode_port_span: int = field(
        default_factory=lambda: _env_int("ORCH_OPENCODE_PORT_SPAN", 100)
    )
    ready_timeout: float = field(default_factory=lambda: _env_float("ORCH_READY_TIMEOUT", 30.0))
    health_timeout: float = field(
        default_factory=lambda: _env_float("ORCH_HEALTH_TIMEOUT", 60.0)
    )
    dead_checks: int = field(default_factory=lambda: _env_int("ORCH_DEAD_CHECKS", 3))
    db_path: Path | None = None

    _ENV_NAMES = {
        "poll_interval": "ORCH_POLL_INTERVAL",
        "capture_lines": "ORCH_CAPTURE_LINES",
        "opencode_base_port": "ORCH_OPENCODE_PORT",
        "opencode_port_span": "ORCH_OPENCODE_PORT_SPAN",
        "ready_timeout": "ORCH_READY_TIMEOUT",
        "health_timeout": "ORCH_HEALTH_TIMEOUT",
        "dead_checks": "ORCH_DEAD_CHECKS",
    }

    def __post_init__(self) -> None:
        self.vault_path = Path(self.vault_path).expanduser()
        if self.db_path is None:
            self.db_path = self.orch_dir / "runs.db"
        else:
            self.db_path = Path(self.db_path).expanduser()
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.dead_checks < 1:
            raise ConfigurationError("dead_checks must be at least 1")

    @property
    def orch_dir(self) -> Path:
        return self.vault_path / ORCH_DIRNAME

    @property
    def opencode_port_range(self) -> range:
        return range(self.opencode_base_port, self.opencode_base_port + self.opencode_port_span + 1)

    @classmethod
    def load(cls, vault_path: str | Path | None = None) -> OrchConfig:
        """Load config for a vault, reading ``.orch/config.yaml`` when present."""
        vault = Path(vault_path) if vault_path is not None else Path(os.getenv("ORCH_VAULT", "."))
        path = vault.expanduser() / ORCH_DIRNAME / CONFIG_FILENAME
        data: dict[str, Any] = {}
        if path.exists():
            with open(path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
            if loaded is not None and not isinstance(loaded, dict):
                raise ConfigurationError(f"Config file must contain a YAML mapping: {path}")
            data = loaded or {}
        return cls._from_dict(data, vault)

    @classmethod
    def _from_dict(cls, data: dict[str, Any], vault: Path) -> OrchConfig:
        known = {f.name for f in fields(cls)} - {"vault_path"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown config keys: {', '.join(unknown)}")
        values: dict[str, Any] = {"vault_path": vault}
        for key, value in data.items():
            env_name = cls._ENV_NAMES.get(key)
            if env_name and os.getenv(env_name):
                continue
            values[key] = value
        return cls(**values)
