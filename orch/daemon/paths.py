"""Well-known files under ``<vault>/.orch`` and PID bookkeeping."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

ORCH_DIR = ".orch"
PID_FILE = "daemon.pid"
LOG_FILE = "daemon.log"
METADATA_FILE = "daemon.json"
SOCKET_FILE = "daemon.sock"


def orch_dir(vault: str | Path) -> Path:
    return Path(vault) / ORCH_DIR


def pid_file_path(vault: str | Path) -> Path:
    return orch_dir(vault) / PID_FILE


def log_file_path(vault: str | Path) -> Path:
    return orch_dir(vault) / LOG_FILE


def metadata_file_path(vault: str | Path) -> Path:
    return orch_dir(vault) / METADATA_FILE


def socket_file_path(vault: str | Path) -> Path:
    return orch_dir(vault) / SOCKET_FILE


def ensure_orch_dir(vault: str | Path) -> Path:
    path = orch_dir(vault)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_pid(vault: str | Path, pid: int | None = None) -> None:
    ensure_orch_dir(vault)
    pid_file_path(vault).write_text(str(pid if pid is not None else os.getpid()))


def read_pid(vault: str | Path) -> int | None:
    """Return the PID recorded for the vault's daemon, or None if absent or garbled."""
    try:
        return int(pid_file_path(vault).read_text().strip())
    except (OSError, ValueError):
        return None


def remove_pid(vault: str | Path) -> None:
    pid_file_path(vault).unlink(missing_ok=True)


def is_process_running(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists, owned by someone else
        return True
    return True


def running_pid(vault: str | Path) -> int | None:
    pid = read_pid(vault)
    if pid is None or not is_process_running(pid):
        return None
    return pid


def is_running(vault: str | Path) -> bool:
    return running_pid(vault) is not None


@dataclass
class DaemonMetadata:
    pid: int
    started_at: str
    exec_path: str
    exec_mtime: float

    @classmethod
    def current(cls) -> DaemonMetadata:
        exec_path = _executable_path()
        try:
            mtime = _newest_mtime(Path(exec_path))
        except OSError:
            mtime = 0.0
        return cls(
            pid=os.getpid(),
            started_at=datetime.now(timezone.utc).isoformat(),
            exec_path=exec_path,
            exec_mtime=mtime,
        )


def _executable_path() -> str:
    """Path to the code the daemon runs: the installed ``orch`` package directory."""
    from .. import __file__ as package_init

    return str(Path(package_init).resolve().parent)


def write_metadata(vault: str | Path, meta: DaemonMetadata | None = None) -> DaemonMetadata:
    meta = meta or DaemonMetadata.current()
    ensure_orch_dir(vault)
    metadata_file_path(vault).write_text(json.dumps(asdict(meta)))
    return meta


def read_metadata(vault: str | Path) -> DaemonMetadata | None:
    try:
        data = json.loads(metadata_file_path(vault).read_text())
        return DaemonMetadata(**data)
    except (OSError, ValueError, TypeError):
        return None


def _newest_mtime(path: Path) -> float:
    if path.is_file():
        return path.stat().st_mtime
    newest = path.stat().st_mtime
    for child in path.rglob("*.py"):
        newest = max(newest, child.stat().st_mtime)
    return newest


def is_stale_binary(vault: str | Path) -> bool:
    """True when the daemon's code changed on disk after it started."""
    if not is_running(vault):
        return False
    meta = read_metadata(vault)
    try:
        if meta is None:
            started = pid_file_path(vault).stat().st_mtime
            return _newest_mtime(Path(_executable_path())) > started
        return _newest_mtime(Path(meta.exec_path)) > meta.exec_mtime
    except OSError:
        return False


def daemon_command(vault: str | Path) -> list[str]:
    """argv that starts a foreground daemon for ``vault``."""
    return [sys.executable, "-m", "orch", "daemon", "--vault", str(vault)]
