"""Pydantic schemas for chat records, configuration, and the stream protocol."""

from turnstream.schemas.chat import (
    Conversation,
    Message,
    MessageRole,
    Turn,
    TurnStatus,
)
from turnstream.schemas.config import (
    ModelConfig,
    ProviderConfig,
    ServerConfig,
    StreamConfig,
)
from turnstream.schemas.streaming import EventKind, StreamError

__all__ = [
    "Conversation",
    "EventKind",
    "Message",
    "MessageRole",
    "ModelConfig",
    "ProviderConfig",
    "ServerConfig",
    "StreamConfig",
    "StreamError",
    "Turn",
    "TurnStatus",
]
