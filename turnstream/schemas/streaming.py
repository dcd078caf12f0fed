"""Streaming protocol schemas.

Defines the named event kinds written to the push channel and the
payload carried by the terminal error event.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from turnstream.schemas.chat import Turn


class EventKind(StrEnum):
    """Named events a streaming session can emit."""

    DELTA = "delta"
    DONE = "done"
    ERROR = "error"


class StreamError(BaseModel):
    """Payload of the terminal ``error`` event: ``{message, failedTurn}``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str = Field(description="Failure description")
    failed_turn: Turn = Field(description="The turn as finalized in FAILED state")
