"""Chat record schemas.

Defines the persisted shapes the coordinator reads and writes:
conversations, stored messages, and assistant turns.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TurnStatus(StrEnum):
    """Lifecycle status of an assistant turn.

    PENDING exists only in memory, before the durable placeholder is
    created. Every persisted turn starts in STREAMING and ends in exactly
    one of the terminal states.
    """

    PENDING = "PENDING"
    STREAMING = "STREAMING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class MessageRole(StrEnum):
    """Roles as stored in the messages table."""

    USER = "USER"
    ASSISTANT = "ASSISTANT"
    SYSTEM = "SYSTEM"
    TOOL = "TOOL"


class Conversation(BaseModel):
    """A chat owned by a single user."""

    id: str = Field(description="Conversation identifier (UUID)")
    user_id: str = Field(description="Owning user identifier")
    title: str = Field(default="New chat", description="Display title")
    last_message_at: datetime | None = Field(
        default=None, description="Last activity marker used for chat list ordering",
    )
    deleted_at: datetime | None = Field(default=None, description="Soft-delete marker")
    created_at: datetime = Field(description="Creation time (UTC)")
    updated_at: datetime = Field(description="Last update time (UTC)")


class Message(BaseModel):
    """A stored chat message used to build the context window."""

    id: str = Field(description="Message identifier (UUID)")
    conversation_id: str = Field(description="Owning conversation identifier")
    role: MessageRole = Field(description="Stored role")
    content: str = Field(default="", description="Message body; JSON for TOOL messages")
    created_at: datetime = Field(description="Creation time (UTC)")


class Turn(BaseModel):
    """One assistant response cycle tied to a triggering user message.

    Serialized to clients with camelCase keys (``by_alias=True``); the
    conversation id goes out as ``chatId`` to match the request parameter.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="Turn identifier (UUID), shared with its message row")
    conversation_id: str = Field(alias="chatId", description="Owning conversation identifier")
    trigger_message_id: str = Field(description="User message that triggered this turn")
    role: MessageRole = Field(default=MessageRole.ASSISTANT)
    content: str = Field(default="", description="Accumulated assistant text")
    provider_id: str = Field(description="Provider that served the generation")
    model_id: str = Field(description="Catalog model identifier")
    status: TurnStatus = Field(default=TurnStatus.STREAMING)
    error_message: str | None = Field(default=None, description="Failure description")
    created_at: datetime = Field(description="Creation time (UTC)")
    updated_at: datetime = Field(description="Last update time (UTC)")
