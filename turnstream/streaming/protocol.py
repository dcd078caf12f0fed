"""Server-sent-events framing for outbound stream events."""

from __future__ import annotations

import re

from turnstream.schemas.streaming import EventKind
from turnstream.streaming.transport import SSEChannel

# SSE data lines cannot contain raw line breaks
_LINE_SPLIT_RE = re.compile(r"\r?\n")


def format_event(kind: str, payload: str) -> str:
    """Frame a named event: one ``event:`` line, one ``data:`` line per
    payload line, and a blank terminator line."""
    lines = [f"event: {kind}"]
    lines.extend(f"data: {line}" for line in _LINE_SPLIT_RE.split(payload))
    return "\n".join(lines) + "\n\n"


def format_comment(text: str) -> str:
    """Frame a comment line; clients ignore it, intermediaries see traffic."""
    return f": {text}\n\n"


class ProtocolWriter:
    """Writes framed events to a single session's channel.

    Must only be called from the owning session's control flow. Each call
    hands exactly one complete frame to the transport, so frames are never
    interleaved.
    """

    def __init__(self, channel: SSEChannel) -> None:
        self._channel = channel

    def emit(self, kind: EventKind | str, payload: str) -> None:
        self._channel.write(format_event(str(kind), payload))

    def comment(self, text: str) -> None:
        self._channel.write(format_comment(text))
