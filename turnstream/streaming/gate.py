"""Serialized checkpoint writes for a streaming turn.

Checkpoint requests arrive from three places: the relay's size
threshold, the interval timer, and the supervisor's final flush. They
all land on one FIFO drained by a single worker task, so writes never
overlap and are applied in the order they were scheduled. Every write
sets the absolute content snapshot, never a delta.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from turnstream.persistence.store import ChatStore
from turnstream.streaming.session import StreamSession

logger = logging.getLogger(__name__)


class PersistenceGate:
    """Single-worker write queue for one turn's content checkpoints."""

    def __init__(
        self,
        store: ChatStore,
        turn_id: str,
        *,
        flush_interval: float = 0.75,
    ) -> None:
        self._store = store
        self._turn_id = turn_id
        self._flush_interval = flush_interval
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._timer: asyncio.Task[None] | None = None

    def start(self, session: StreamSession) -> None:
        """Start the write worker and the interval-driven checkpoint loop."""
        self._ensure_worker()
        if self._timer is None:
            self._timer = asyncio.get_running_loop().create_task(
                self._flush_loop(session)
            )

    def schedule_persist(self, snapshot: str) -> None:
        """Append a checkpoint of the full content to the write chain."""
        self._queue.put_nowait(snapshot)
        self._ensure_worker()

    def flush_pending(self, session: StreamSession) -> bool:
        """Schedule a checkpoint if the session has unpersisted text."""
        if not session.take_pending():
            return False
        self.schedule_persist(session.content)
        return True

    async def stop_timer(self) -> None:
        """Stop the interval loop; already-scheduled writes keep flowing."""
        if self._timer is not None:
            self._timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer
            self._timer = None

    async def drain(self) -> None:
        """Wait until every scheduled write has settled."""
        await self._queue.join()

    async def close(self) -> None:
        """Drain outstanding writes, then stop the worker."""
        await self.stop_timer()
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._work())

    async def _flush_loop(self, session: StreamSession) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            self.flush_pending(session)

    async def _work(self) -> None:
        while True:
            snapshot = await self._queue.get()
            try:
                await self._store.update_turn_content(self._turn_id, snapshot)
            except Exception:
                logger.warning(
                    "Checkpoint write failed for turn %s (%d chars)",
                    self._turn_id, len(snapshot), exc_info=True,
                )
            finally:
                self._queue.task_done()
