"""Heuristic status classification over captured terminal text.

Everything here is a pure function of its inputs. Agents print free-form
text, so the markers below are best-effort and tuned against the claude,
codex, gemini and opencode terminal UIs.
"""

from __future__ import annotations

import hashlib
import re

from .models import Status

# Input box / permission prompt markers.
WAITING_FOR_INPUT_MARKERS = (
    "No, and tell Claude what to do differently",
    "tell Claude what to do differently",
    "↵ send",
    "? for shortcuts",
    "accept edits",
    "bypass permissions",
    "shift+tab to cycle",
    "Esc to cancel",
    "to show all projects",
    "Type your message",
    "ctrl+s send",
    "enter newline",
    "ctrl+c interrupt",
)

# Any of these anywhere in the capture means the agent UI is still up.
STILL_INTERACTIVE_MARKERS = (
    "↵ send",
    "accept edits",
    "? for shortcuts",
    "tell Claude what to do differently",
    "tokens",
    "Esc to cancel",
    "to show all projects",
    "ctrl+s send",
    "enter newline",
    "ctrl+c interrupt",
    "opencode server listening",
    "POST /session",
    "POST /message",
)

SHELL_PROMPT_SUFFIXES = ("$ ", "% ", "# ", "❯ ", "➜ ")
SHELL_PROMPT_CHARS = ("$", "%", "✗", "❯", "➜")

COMPLETION_PHRASES = (
    "task completed successfully",
    "all tasks completed",
    "session ended",
    "goodbye",
)

API_LIMIT_PHRASES = (
    "cost limit reached",
    "rate limit exceeded",
    "rate limit reached",
    "quota exceeded",
    "insufficient quota",
    "resource exhausted",
    "you've hit your limit",
    "/rate-limit-options",
    "stop and wait for limit to reset",
)

FAILURE_PHRASES = (
    "fatal error",
    "unrecoverable error",
    "agent crashed",
    "session terminated",
    "authentication failed",
)

COMPLETION_WINDOW = 5
API_LIMIT_WINDOW = 30
FAILURE_WINDOW = 10
STATUS_BAR_LINES = 5

PR_URL_RE = re.compile(
    r"https://(?:github\.com|gitlab\.com)/[^\s]+/pull/\d+"
    r"|https://(?:github\.com|gitlab\.com)/[^\s]+/merge_requests/\d+"
)


def last_lines(text: str, n: int) -> str:
    lines = text.split("\n")
    if len(lines) <= n:
        return text
    return "\n".join(lines[-n:])


def _tail_contains(text: str, n: int, phrases: tuple[str, ...]) -> bool:
    tail = last_lines(text, n).lower()
    return any(phrase in tail for phrase in phrases)


def is_waiting_for_input(text: str) -> bool:
    return any(marker in text for marker in WAITING_FOR_INPUT_MARKERS)


def is_agent_exited(text: str) -> bool:
    """True when the agent UI is gone and a shell prompt is showing."""
    if any(marker in text for marker in STILL_INTERACTIVE_MARKERS):
        return False

    raw_last = ""
    for line in reversed(text.split("\n")):
        if line.strip():
            raw_last = line.rstrip("\r\n")
            break
    if not raw_last:
        return False

    last = raw_last.strip()
    if "git:(" in last and ")" in last:
        return True
    if raw_last.endswith(SHELL_PROMPT_SUFFIXES):
        return True
    return last.endswith(SHELL_PROMPT_CHARS)


def is_completed(text: str) -> bool:
    return _tail_contains(text, COMPLETION_WINDOW, COMPLETION_PHRASES)


def is_api_limited(text: str) -> bool:
    return _tail_contains(text, API_LIMIT_WINDOW, API_LIMIT_PHRASES)


def is_failed(text: str) -> bool:
    return _tail_contains(text, FAILURE_WINDOW, FAILURE_PHRASES)


def classify(text: str, output_changed: bool, has_prompt: bool) -> Status | None:
    """Derive a status from one capture. ``None`` means keep the current status."""
    if is_agent_exited(text):
        return Status.UNKNOWN
    if is_completed(text):
        return Status.DONE
    if is_api_limited(text):
        return Status.BLOCKED_API
    if is_failed(text):
        return Status.FAILED
    if output_changed:
        return Status.RUNNING
    if has_prompt:
        return Status.BLOCKED
    return None


def hash_content(text: str) -> str:
    """Hash the capture minus the trailing status-bar lines.

    Token counters and shortcut hints redraw constantly at the bottom of the
    pane and would otherwise register as output changes.
    """
    lines = text.split("\n")
    if len(lines) > STATUS_BAR_LINES:
        lines = lines[:-STATUS_BAR_LINES]
    return hashlib.md5("\n".join(lines).encode()).hexdigest()


def detect_pr_url(text: str) -> str:
    """Return the first GitHub/GitLab pull or merge request URL, or ``""``."""
    match = PR_URL_RE.search(text)
    return match.group(0) if match else ""
