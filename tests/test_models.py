"""Tests for run identifiers and core data models."""

from __future__ import annotations

from datetime import datetime

import pytest

from orch.errors import UnknownAgentError
from orch.models import (
    ACTIVE_STATUSES,
    AgentType,
    BackendKind,
    LaunchConfig,
    Run,
    RunRef,
    Status,
    backend_kind_for,
    generate_run_id,
    generate_short_id,
    generate_tmux_session,
    parse_agent_type,
)


def test_short_id_is_stable_hex():
    short = generate_short_id("ISSUE-1", "20260101-120000")
    assert short == generate_short_id("ISSUE-1", "20260101-120000")
    assert len(short) == 6 and int(short, 16) >= 0
    assert short != generate_short_id("ISSUE-1", "20260101-120001")


def test_session_and_run_id_formats():
    assert generate_tmux_session("ENG-1", "r2") == "run-ENG-1-r2"
    assert generate_run_id(datetime(2026, 3, 4, 5, 6, 7)) == "20260304-050607"


@pytest.mark.parametrize(
    ("text", "issue", "run"),
    [("ENG-1#20260101", "ENG-1", "20260101"), ("ENG-1", "ENG-1", ""), (" ENG-1#a ", "ENG-1", "a")],
)
def test_run_ref_parse(text, issue, run):
    ref = RunRef.parse(text)
    assert (ref.issue_id, ref.run_id) == (issue, run)
    assert ref.is_latest == (run == "")


def test_run_ref_str():
    assert str(RunRef("A", "1")) == "A#1"
    assert str(RunRef("A")) == "A"
    with pytest.raises(ValueError):
        RunRef.parse("")


def test_parse_agent_type():
    assert parse_agent_type(" opencode ") is AgentType.OPENCODE
    with pytest.raises(UnknownAgentError, match="unknown agent type: cursor"):
        parse_agent_type("cursor")


def test_backend_kind():
    assert backend_kind_for(AgentType.OPENCODE) is BackendKind.API
    for agent in (AgentType.CLAUDE, AgentType.CODEX, AgentType.GEMINI, AgentType.CUSTOM):
        assert backend_kind_for(agent) is BackendKind.TERMINAL


def test_terminal_statuses():
    assert {s for s in Status if s.is_terminal} == {
        Status.DONE,
        Status.FAILED,
        Status.CANCELED,
        Status.UNKNOWN,
    }
    assert not any(s.is_terminal for s in ACTIVE_STATUSES)


def test_run_dict_round_trip():
    run = Run(issue_id="A", run_id="1", agent=AgentType.GEMINI, status=Status.PR_OPEN, pr_url="u")
    data = run.to_dict()
    assert data["agent"] == "gemini" and data["status"] == "pr_open"
    assert Run.from_dict(data) == run
    assert run.session_name == "run-A-1"


def test_launch_config_env(monkeypatch):
    monkeypatch.setenv("HOME", "/home/me")
    config = LaunchConfig(
        AgentType.CLAUDE,
        working_dir="/w",
        issue_id="A",
        run_id="1",
        run_path="/v/runs/A/1.md",
        vault_path="/v",
        branch="issue/A",
    )
    assert config.env() == {
        "ORCH_ISSUE_ID": "A",
        "ORCH_RUN_ID": "1",
        "ORCH_RUN_PATH": "/v/runs/A/1.md",
        "ORCH_WORKTREE_PATH": "/w",
        "ORCH_BRANCH": "issue/A",
        "ORCH_VAULT": "/v",
        "HOME": "/home/me",
    }
    assert config.with_port(4100).port == 4100
    assert config.port == 0
