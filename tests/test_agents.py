"""Tests for agent adapters, shell quoting and the registry."""

from __future__ import annotations

import json
import subprocess

import pytest

from conftest import RecordingRunner
from orch.agents import opencode as opencode_mod
from orch.agents.quoting import double_quote, single_quote
from orch.agents.registry import get_adapter, known_models
from orch.errors import AgentNotAvailableError, CustomCommandMissingError, UnknownAgentError
from orch.models import AgentType, InjectionMethod, LaunchConfig
from orch.runtime.commands import CommandResult


def _config(agent_type: AgentType = AgentType.CLAUDE, **kwargs) -> LaunchConfig:
    return LaunchConfig(agent_type=agent_type, **kwargs)


def test_single_quote_escapes_embedded_quotes():
    assert single_quote("hello 'world'") == "'hello '\"'\"'world'\"'\"''"


def test_double_quote_escapes_shell_specials():
    assert double_quote('a "b" `c` $d \\e') == '"a \\"b\\" \\`c\\` \\$d \\\\e"'


@pytest.mark.parametrize(
    "prompt",
    [
        "plain words",
        "it's `rm -rf /` and $(whoami) with \\ backslash",
        "quotes \"double\" and 'single'; echo pwned",
        "multi\nline $HOME",
    ],
)
def test_quoted_prompts_survive_the_shell(prompt):
    for quote in (single_quote, double_quote):
        result = subprocess.run(
            ["sh", "-c", f"printf '%s' {quote(prompt)}"],
            capture_output=True,
            text=True,
            check=True,
        )
        assert result.stdout == prompt


def test_claude_launch_command_flags():
    adapter = get_adapter(AgentType.CLAUDE)
    cmd = adapter.launch_command(
        _config(prompt="fix it", model="opus", resume=True, session_name="run-X-1")
    )
    assert cmd == "claude --dangerously-skip-permissions --model opus --resume run-X-1 -p 'fix it'"


def test_claude_resume_requires_session_name():
    adapter = get_adapter(AgentType.CLAUDE)
    assert adapter.launch_command(_config(resume=True)) == "claude --dangerously-skip-permissions"


def test_codex_launch_command_with_reasoning_effort():
    adapter = get_adapter(AgentType.CODEX)
    cmd = adapter.launch_command(
        _config(AgentType.CODEX, prompt="go", model="gpt-5.2", model_variant="high")
    )
    assert cmd == "codex --full-auto --model gpt-5.2 -c model_reasoning_effort=high 'go'"


def test_gemini_launch_command():
    adapter = get_adapter(AgentType.GEMINI)
    assert adapter.launch_command(_config(AgentType.GEMINI, prompt="hi")) == "gemini --yolo -p 'hi'"


def test_launch_command_is_deterministic():
    adapter = get_adapter(AgentType.CODEX)
    config = _config(AgentType.CODEX, prompt="same $input", model="o3")
    assert adapter.launch_command(config) == adapter.launch_command(config)


def test_custom_requires_command():
    adapter = get_adapter(AgentType.CUSTOM)
    with pytest.raises(CustomCommandMissingError, match="--agent-cmd"):
        adapter.launch_command(_config(AgentType.CUSTOM))


def test_custom_command_is_verbatim_plus_quoted_prompt():
    adapter = get_adapter(AgentType.CUSTOM)
    assert adapter.launch_command(_config(AgentType.CUSTOM, custom_cmd="aider --yes")) == "aider --yes"
    assert (
        adapter.launch_command(_config(AgentType.CUSTOM, custom_cmd="aider --yes", prompt="don't"))
        == "aider --yes 'don'\"'\"'t'"
    )
    assert adapter.is_available()


def test_unknown_agent_type():
    with pytest.raises(UnknownAgentError, match="unknown agent type: cursor"):
        get_adapter("cursor")


def test_is_available_runs_version_with_timeout():
    runner = RecordingRunner(lambda args: CommandResult(127))
    adapter = get_adapter(AgentType.GEMINI, runner=runner)
    assert adapter.is_available() is False
    assert runner.calls == [["gemini", "--version"]]


def test_terminal_adapters_default_to_arg_injection():
    for agent_type in (AgentType.CLAUDE, AgentType.CODEX, AgentType.GEMINI, AgentType.CUSTOM):
        adapter = get_adapter(agent_type)
        assert adapter.prompt_injection() == InjectionMethod.ARG
        assert adapter.ready_pattern() == ""
        assert adapter.extra_env() == {}


def test_opencode_serve_command(monkeypatch):
    monkeypatch.setattr(opencode_mod, "find_opencode_binary", lambda: "/usr/bin/opencode")
    adapter = get_adapter(AgentType.OPENCODE)
    assert adapter.launch_command(_config(AgentType.OPENCODE)) == (
        "/usr/bin/opencode serve --port 4096 --hostname 0.0.0.0"
    )
    assert adapter.launch_command(_config(AgentType.OPENCODE, port=4123, prompt="ignored")) == (
        "/usr/bin/opencode serve --port 4123 --hostname 0.0.0.0"
    )
    assert adapter.prompt_injection() == InjectionMethod.HTTP


def test_opencode_continue_command_double_quotes_prompt(monkeypatch):
    monkeypatch.setattr(opencode_mod, "find_opencode_binary", lambda: "opencode")
    adapter = get_adapter(AgentType.OPENCODE)
    cmd = adapter.launch_command(
        _config(AgentType.OPENCODE, continue_session=True, prompt='say "$HI"')
    )
    assert cmd == 'opencode --continue --prompt "say \\"\\$HI\\""'


def test_opencode_missing_binary(monkeypatch):
    monkeypatch.setattr(opencode_mod, "find_opencode_binary", lambda: "")
    adapter = get_adapter(AgentType.OPENCODE)
    assert adapter.is_available() is False
    with pytest.raises(AgentNotAvailableError):
        adapter.launch_command(_config(AgentType.OPENCODE))


def test_opencode_binary_falls_back_to_home(monkeypatch, tmp_path):
    binary = tmp_path / ".opencode" / "bin" / "opencode"
    binary.parent.mkdir(parents=True)
    binary.write_text("#!/bin/sh\n")
    monkeypatch.setattr(opencode_mod.shutil, "which", lambda name: None)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert opencode_mod.find_opencode_binary() == str(binary)


def test_opencode_permission_env_allows_all_tools():
    adapter = get_adapter(AgentType.OPENCODE)
    permissions = json.loads(adapter.extra_env()["OPENCODE_PERMISSION"])
    assert set(permissions) == {"edit", "bash", "skill", "webfetch", "doom_loop", "external_directory"}
    assert set(permissions.values()) == {"allow"}
    assert adapter.attach_command(4100) == "opencode attach http://127.0.0.1:4100"
    assert adapter.health_endpoint(4100) == "http://127.0.0.1:4100/global/health"


def test_known_models():
    assert "opus" in known_models(AgentType.CLAUDE)
    assert known_models(AgentType.OPENCODE) == []


_ECHO_ARGS = "claude() { printf '%s\\n' \"$@\"; }; codex() { claude \"$@\"; }; gemini() { claude \"$@\"; }; "


@pytest.mark.parametrize(
    ("agent_type", "fields", "expected_arg"),
    [
        (AgentType.CLAUDE, {"model": "opus;touch {marker} #"}, "opus;touch {marker} #"),
        (
            AgentType.CLAUDE,
            {"resume": True, "session_name": "x;touch {marker}"},
            "x;touch {marker}",
        ),
        (
            AgentType.CODEX,
            {"model_variant": "high;touch {marker}"},
            "model_reasoning_effort=high;touch {marker}",
        ),
        (AgentType.GEMINI, {"model": "$(touch {marker})"}, "$(touch {marker})"),
    ],
)
def test_launch_command_fields_cannot_inject_shell(tmp_path, agent_type, fields, expected_arg):
    marker = tmp_path / "pwned"
    values = {k: v.format(marker=marker) if isinstance(v, str) else v for k, v in fields.items()}
    cmd = get_adapter(agent_type).launch_command(_config(agent_type, prompt="hi", **values))

    result = subprocess.run(["sh", "-c", _ECHO_ARGS + cmd], capture_output=True, text=True, check=True)

    assert not marker.exists()
    assert expected_arg.format(marker=marker) in result.stdout.splitlines()


def test_opencode_binary_path_is_quoted(monkeypatch):
    monkeypatch.setattr(opencode_mod, "find_opencode_binary", lambda: "/opt/my tools/opencode")
    cmd = get_adapter(AgentType.OPENCODE).launch_command(_config(AgentType.OPENCODE, port=4100))
    assert cmd == "'/opt/my tools/opencode' serve --port 4100 --hostname 0.0.0.0"
