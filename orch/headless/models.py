"""Wire types for the opencode server API."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


@dataclass
class Session:
    id: str
    title: str = ""
    directory: str = ""
    parent_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            directory=data.get("directory") or "",
            parent_id=data.get("parentID") or "",
        )


@dataclass
class MessagePart:
    type: str
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.text:
            data["text"] = self.text
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MessagePart:
        return cls(type=data.get("type") or "", text=data.get("text") or "")


@dataclass
class MessageInfo:
    id: str = ""
    session_id: str = ""
    role: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MessageInfo:
        return cls(
            id=data.get("id") or "",
            session_id=data.get("sessionID") or "",
            role=data.get("role") or "",
        )


@dataclass
class Message:
    info: MessageInfo = field(default_factory=MessageInfo)
    parts: list[MessagePart] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            info=MessageInfo.from_dict(data.get("info") or {}),
            parts=[MessagePart.from_dict(p) for p in data.get("parts") or []],
        )


@dataclass(frozen=True)
class ModelRef:
    provider_id: str
    model_id: str

    def to_dict(self) -> dict[str, str]:
        return {"providerID": self.provider_id, "modelID": self.model_id}


def parse_model(model: str) -> ModelRef | None:
    """Parse ``provider/model``. Anything without a slash yields None."""
    if not model:
        return None
    provider, sep, model_id = model.partition("/")
    if not sep:
        return None
    return ModelRef(provider_id=provider, model_id=model_id)


@dataclass
class PromptRequest:
    parts: list[MessagePart]
    model: ModelRef | None = None
    variant: str = ""  # thinking mode: "high", "max", ...

    @classmethod
    def text(cls, text: str, model: ModelRef | None = None, variant: str = "") -> PromptRequest:
        return cls(parts=[MessagePart(type="text", text=text)], model=model, variant=variant)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"parts": [p.to_dict() for p in self.parts]}
        if self.model is not None:
            payload["model"] = self.model.to_dict()
        if self.variant:
            payload["variant"] = self.variant
        return payload


@dataclass
class Event:
    type: str
    properties: Any = None

    @classmethod
    def from_json(cls, raw: str) -> Event:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("event is not an object")
        return cls(type=str(data.get("type", "")), properties=data.get("properties"))


class SessionStatus(StrEnum):
    IDLE = "idle"
    BUSY = "busy"
    RETRY = "retry"


def parse_session_status(body: Any) -> dict[str, str]:
    """Normalize ``/session/status`` to ``{session_id: status}``.

    Servers answer either ``{"id": "busy"}`` or ``{"id": {"type": "busy"}}``.
    Values stay plain strings so unrecognized states pass through.
    """
    if isinstance(body, (str, bytes)):
        body = json.loads(body)
    if not isinstance(body, dict):
        raise ValueError(f"unable to parse session status response: {body!r}")
    result: dict[str, str] = {}
    for session_id, value in body.items():
        if isinstance(value, str):
            result[session_id] = value
        elif isinstance(value, dict):
            result[session_id] = str(value.get("type", ""))
        else:
            raise ValueError(f"unable to parse session status response: {body!r}")
    return result


@dataclass
class HealthResponse:
    healthy: bool = False
    version: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthResponse:
        return cls(healthy=bool(data.get("healthy")), version=data.get("version") or "")


@dataclass
class ProjectInfo:
    id: str = ""
    worktree: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectInfo:
        return cls(id=data.get("id") or "", worktree=data.get("worktree") or "")


@dataclass
class ModelInfo:
    id: str
    name: str = ""
    variants: list[str] = field(default_factory=list)
    attachments: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelInfo:
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            variants=list(data.get("variants") or []),
            attachments=bool(data.get("attachments")),
        )


@dataclass
class ProviderInfo:
    id: str
    name: str = ""
    models: list[ModelInfo] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderInfo:
        models = data.get("models") or []
        # newer servers key models by id
        if isinstance(models, dict):
            models = [{"id": key, **value} for key, value in models.items()]
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            models=[ModelInfo.from_dict(m) for m in models],
        )


@dataclass
class ProvidersResponse:
    all: list[ProviderInfo] = field(default_factory=list)
    thinking: list[ProviderInfo] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvidersResponse:
        return cls(
            all=[ProviderInfo.from_dict(p) for p in data.get("all") or []],
            thinking=[ProviderInfo.from_dict(p) for p in data.get("thinking") or []],
        )
