"""Keep-alive comment frames for long-lived streams."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from turnstream.streaming.protocol import ProtocolWriter

logger = logging.getLogger(__name__)


class Heartbeat:
    """Writes a ``: ping`` comment every ``interval`` seconds.

    Runs independently of generation speed and persistence latency so
    intermediaries never see the connection as idle.
    """

    def __init__(self, writer: ProtocolWriter, interval: float = 15.0) -> None:
        self._writer = writer
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self.beats = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.debug("Heartbeat stopped after %d beats", self.beats)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._writer.comment("ping")
            self.beats += 1
