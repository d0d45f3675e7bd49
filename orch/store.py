"""Run storage consumed by the daemon, launcher and CLI."""

from __future__ import annotations

import json
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Protocol

from .errors import RunNotFoundError
from .models import Run, RunRef, Status


class RunStore(Protocol):
    """Storage interface for runs and their artifacts."""

    def get_run(self, ref: RunRef) -> Run:
        """Return the run for ``ref`` (latest run of the issue when ``ref.run_id`` is empty)."""

    def get_latest_run(self, issue_id: str) -> Run:
        """Return the most recently started run for an issue."""

    def get_run_by_short_id(self, short_id: str) -> Run:
        """Return the run whose 6-char short id matches."""

    def list_runs(self, statuses: Iterable[Status] | None = None) -> list[Run]:
        """List runs, optionally filtered by status."""

    def save_run(self, run: Run) -> None:
        """Insert or replace a run."""

    def update_status(self, ref: RunRef, status: Status) -> None:
        """Set a run's status."""

    def record_artifact(self, ref: RunRef, kind: str, **fields: str) -> None:
        """Attach an artifact (``pr``, ``error``, ``session`` ...) to a run."""


class SqliteRunStore:
    """SQLite-backed ``RunStore`` implementation.

    Runs are stored as JSON documents keyed by ``(issue_id, run_id)``; a few
    columns are lifted out for lookups. Artifacts are append-only. Known
    artifact fields (``url`` for PRs, ``message`` for errors) are also
    mirrored onto the run so readers do not need to join.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        """Open a WAL-mode connection to the backing database."""
        conn = sqlite3.connect(str(self.path), timeout=5.0)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS runs (
                    issue_id TEXT NOT NULL,
                    run_id TEXT NOT NULL,
                    short_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    run_json TEXT NOT NULL,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (issue_id, run_id)
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_runs_short_id ON runs(short_id)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS artifacts (
                    issue_id TEXT NOT NULL,
                    run_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    fields_json TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )

    def _one(self, query: str, params: tuple[Any, ...], missing: str) -> Run:
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            raise RunNotFoundError(missing)
        return Run.from_dict(json.loads(row[0]))

    def get_run(self, ref: RunRef) -> Run:
        if ref.is_latest:
            return self.get_latest_run(ref.issue_id)
        return self._one(
            "SELECT run_json FROM runs WHERE issue_id = ? AND run_id = ?",
            (ref.issue_id, ref.run_id),
            str(ref),
        )

    def get_latest_run(self, issue_id: str) -> Run:
        return self._one(
            "SELECT run_json FROM runs WHERE issue_id = ? ORDER BY started_at DESC, run_id DESC LIMIT 1",
            (issue_id,),
            issue_id,
        )

    def get_run_by_short_id(self, short_id: str) -> Run:
        return self._one(
            "SELECT run_json FROM runs WHERE short_id = ? ORDER BY started_at DESC LIMIT 1",
            (short_id.lower(),),
            short_id,
        )

    def list_runs(self, statuses: Iterable[Status] | None = None) -> list[Run]:
        query = "SELECT run_json FROM runs"
        params: tuple[Any, ...] = ()
        if statuses is not None:
            wanted = [str(s) for s in statuses]
            if not wanted:
                return []
            query += f" WHERE status IN ({', '.join('?' for _ in wanted)})"
            params = tuple(wanted)
        query += " ORDER BY started_at DESC, issue_id, run_id"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Run.from_dict(json.loads(row[0])) for row in rows]

    def save_run(self, run: Run) -> None:
        payload = json.dumps(run.to_dict(), ensure_ascii=True)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO runs(issue_id, run_id, short_id, status, started_at, run_json, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(issue_id, run_id)
                DO UPDATE SET status = excluded.status,
                              run_json = excluded.run_json,
                              updated_at = excluded.updated_at
                """,
                (
                    run.issue_id,
                    run.run_id,
                    run.short_id,
                    str(run.status),
                    run.started_at.isoformat(),
                    payload,
                    time.time(),
                ),
            )

    def update_status(self, ref: RunRef, status: Status) -> None:
        run = self.get_run(ref)
        run.status = status
        run.updated_at = datetime.now(timezone.utc)
        self.save_run(run)

    def record_artifact(self, ref: RunRef, kind: str, **fields: str) -> None:
        run = self.get_run(ref)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO artifacts(issue_id, run_id, kind, fields_json, created_at) VALUES (?, ?, ?, ?, ?)",
                (run.issue_id, run.run_id, kind, json.dumps(fields, ensure_ascii=True), time.time()),
            )
        if kind == "pr" and fields.get("url"):
            run.pr_url = fields["url"]
        elif kind == "error" and fields.get("message"):
            run.error = fields["message"]
        elif kind == "window" and fields.get("id"):
            run.tmux_window_id = fields["id"]
        elif kind == "session":
            run.tmux_session = fields.get("tmux_session", run.tmux_session)
            run.session_id = fields.get("session_id", run.session_id)
            if fields.get("server_port"):
                run.server_port = int(fields["server_port"])
            run.model = fields.get("model", run.model)
            run.model_variant = fields.get("model_variant", run.model_variant)
        else:
            return
        run.updated_at = datetime.now(timezone.utc)
        self.save_run(run)

    def list_artifacts(self, ref: RunRef) -> list[tuple[str, dict[str, str]]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT kind, fields_json FROM artifacts WHERE issue_id = ? AND run_id = ? ORDER BY created_at, rowid",
                (ref.issue_id, ref.run_id),
            ).fetchall()
        return [(kind, json.loads(data)) for kind, data in rows]


def resolve_run(store: RunStore, text: str) -> Run:
    """Resolve ``ISSUE#RUN``, a bare ``ISSUE`` (latest run) or a 6-char short id."""
    ref = RunRef.parse(text)
    if ref.is_latest and len(ref.issue_id) == 6 and all(c in "0123456789abcdef" for c in ref.issue_id.lower()):
        try:
            return store.get_run_by_short_id(ref.issue_id)
        except RunNotFoundError:
            pass  # fall through: might be an issue id that looks like hex
    return store.get_run(ref)

