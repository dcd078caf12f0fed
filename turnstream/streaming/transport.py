"""One-way push channel between a streaming session and its HTTP response.

The session writes already-framed text; the HTTP layer drains frames
from ``frames()`` into the response body. When the client goes away the
HTTP layer calls ``disconnect()``, which fires the registered listeners.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable

logger = logging.getLogger(__name__)

DisconnectListener = Callable[[], object]


class SSEChannel:
    """Queue-backed server-sent-events channel for exactly one client.

    Writes after ``close()`` or ``disconnect()`` are silent no-ops: callers
    learn about a lost client through the disconnect listeners, never
    through write failures.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._listeners: list[DisconnectListener] = []
        self._closed = False
        self._disconnected = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def disconnected(self) -> bool:
        """True when the client went away before the server closed the stream."""
        return self._disconnected

    def add_disconnect_listener(self, listener: DisconnectListener) -> None:
        self._listeners.append(listener)

    def write(self, frame: str) -> None:
        """Hand one frame to the transport for immediate delivery."""
        if self._closed:
            return
        self._queue.put_nowait(frame)

    def close(self) -> None:
        """Server-side end of stream: release the connection."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def disconnect(self) -> None:
        """Client-side end of stream.

        Fires every listener once. No-op when the server already closed
        the stream normally.
        """
        if self._closed:
            return
        self._closed = True
        self._disconnected = True
        self._queue.put_nowait(None)

        for listener in self._listeners:
            try:
                listener()
            except Exception:
                logger.exception("Disconnect listener failed")

    async def frames(self) -> AsyncIterator[str]:
        """Yield frames in write order until the channel is closed."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame
