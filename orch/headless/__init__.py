"""Client for headless agents served over HTTP (opencode)."""

from .client import OpenCodeClient
from .events import EventSubscription
from .models import (
    Event,
    HealthResponse,
    Message,
    MessageInfo,
    MessagePart,
    ModelRef,
    ProjectInfo,
    PromptRequest,
    ProvidersResponse,
    Session,
    SessionStatus,
    parse_model,
    parse_session_status,
)
from .retry import retry

__all__ = [
    "Event",
    "EventSubscription",
    "HealthResponse",
    "Message",
    "MessageInfo",
    "MessagePart",
    "ModelRef",
    "OpenCodeClient",
    "ProjectInfo",
    "PromptRequest",
    "ProvidersResponse",
    "Session",
    "SessionStatus",
    "parse_model",
    "parse_session_status",
    "retry",
]
