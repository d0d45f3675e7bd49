"""Shell quoting for prompts embedded in launch commands."""

from __future__ import annotations


def single_quote(s: str) -> str:
    """Wrap ``s`` in single quotes; embedded quotes become ``'"'"'``."""
    return "'" + s.replace("'", "'\"'\"'") + "'"


def double_quote(s: str) -> str:
    """Wrap ``s`` in double quotes, escaping backslash, quote, backtick and dollar."""
    for char in ("\\", '"', "`", "$"):
        s = s.replace(char, "\\" + char)
    return '"' + s + '"'
