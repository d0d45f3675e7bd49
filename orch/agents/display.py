"""Compact agent labels for run tables."""

from __future__ import annotations

MAX_AGENT_DISPLAY_WIDTH = 15

_VARIANT_SUFFIXES = {"": "", "max": "", "high": "h", "codex": "c", "mini": "m", "low": "l"}


def agent_display_name(agent: str, model: str = "", variant: str = "") -> str:
    """Shorten opencode labels to ``oc:<model><variant>``.

    ``anthropic/claude-opus-4-5`` with variant ``high`` becomes ``oc:opus4.5h``;
    ``openai/gpt-5-2`` becomes ``oc:gpt5.2``. Other agents keep their name.
    """
    agent = agent.strip()
    if not agent:
        return "-"
    if agent != "opencode":
        return agent

    short = _shorten_model(model.strip()) if model.strip() else ""
    if not short:
        return "oc"
    label = f"oc:{short}{_variant_suffix(variant)}"
    return label[:MAX_AGENT_DISPLAY_WIDTH]


def _shorten_model(model: str) -> str:
    model = model.rsplit("/", 1)[-1].lower()

    if model.startswith("claude-"):
        return _format_claude(model.removeprefix("claude-"))
    if model.startswith("gpt-"):
        return "gpt" + _format_version(model.removeprefix("gpt-"))
    if len(model) >= 2 and model[0] == "o" and model[1].isdigit():
        return model
    if model.startswith("gemini-"):
        return "gemini" + _format_version(model.removeprefix("gemini-"))
    return model[:12]


def _format_claude(name: str) -> str:
    parts = name.split("-")
    if len(parts) < 2:
        return name
    if parts[0].isdigit():
        # legacy naming: claude-3-5-sonnet
        numeric = [parts[0]]
        model_idx = 1
        for part in parts[1:]:
            if not part.isdigit():
                break
            numeric.append(part)
            model_idx += 1
        version = ".".join(numeric)
        if model_idx < len(parts):
            return parts[model_idx] + version
        return version
    return parts[0] + _format_version("-".join(parts[1:]))


def _format_version(version: str) -> str:
    parts = version.split("-")
    if len(parts) > 1 and all(p.isdigit() for p in parts):
        return ".".join(parts)
    return version


def _variant_suffix(variant: str) -> str:
    variant = variant.strip().lower()
    if variant in _VARIANT_SUFFIXES:
        return _VARIANT_SUFFIXES[variant]
    return variant[0]
