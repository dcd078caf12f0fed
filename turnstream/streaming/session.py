"""Per-connection in-memory state of one streaming turn."""

from __future__ import annotations

import asyncio


class StreamSession:
    """Ephemeral state shared by the relay, the heartbeat and the gate.

    Holds the cancellation signal, the accumulated text and the
    not-yet-persisted tail. Created by the supervisor for one connection
    and dropped when the connection closes; never persisted.
    """

    def __init__(self, turn_id: str) -> None:
        self.turn_id = turn_id
        self.cancelled = asyncio.Event()
        self._parts: list[str] = []
        self._pending = ""

    @property
    def content(self) -> str:
        """Everything generated so far."""
        return "".join(self._parts)

    @property
    def pending(self) -> str:
        """Text generated since the last scheduled checkpoint."""
        return self._pending

    def append(self, delta: str) -> None:
        self._parts.append(delta)
        self._pending += delta

    def take_pending(self) -> bool:
        """Clear the pending tail; return whether there was anything in it."""
        had_pending = bool(self._pending)
        self._pending = ""
        return had_pending

    def cancel(self) -> None:
        """Signal cancellation; idempotent."""
        self.cancelled.set()
