"""Generation relay: upstream increments to the client and the write chain.

The relay pulls text increments from the provider and, for each one,
emits a ``delta`` event first and only then considers a checkpoint, so
persisted content never runs ahead of what the client has been sent.
It never finalizes the turn itself; it reports back to the supervisor.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from turnstream.providers.base import ModelProvider
from turnstream.schemas.streaming import EventKind
from turnstream.streaming.gate import PersistenceGate
from turnstream.streaming.protocol import ProtocolWriter
from turnstream.streaming.session import StreamSession

logger = logging.getLogger(__name__)

CLIENT_DISCONNECTED = "Client disconnected"


@dataclass(frozen=True)
class RelayOutcome:
    """How a relay run ended."""

    content: str
    error: str | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def describe_error(error: BaseException) -> str:
    """Error text recorded on a failed turn."""
    return str(error) or type(error).__name__


class GenerationRelay:
    """Relays one upstream generation for one streaming session."""

    def __init__(
        self,
        provider: ModelProvider,
        writer: ProtocolWriter,
        gate: PersistenceGate,
        session: StreamSession,
        *,
        persist_threshold: int = 200,
        system: str = "",
    ) -> None:
        self._provider = provider
        self._writer = writer
        self._gate = gate
        self._session = session
        self._persist_threshold = persist_threshold
        self._system = system

    async def run(self, messages: list[dict]) -> RelayOutcome:
        """Consume the upstream stream until it ends, fails, or is cancelled.

        The consumer runs as its own task raced against the session's
        cancellation event. On cancellation the consumer task is cancelled,
        which closes the upstream stream.
        """
        loop = asyncio.get_running_loop()
        consumer = loop.create_task(self._consume(messages))
        cancel_wait = loop.create_task(self._session.cancelled.wait())

        try:
            done, _ = await asyncio.wait(
                {consumer, cancel_wait}, return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            await self._close_consumer(consumer)
            raise
        finally:
            cancel_wait.cancel()

        if consumer in done:
            error = consumer.exception()
            if error is not None:
                logger.warning(
                    "Upstream generation failed for turn %s after %d chars: %s",
                    self._session.turn_id, len(self._session.content), error,
                )
                return RelayOutcome(self._session.content, describe_error(error))
            return RelayOutcome(self._session.content)

        await self._close_consumer(consumer)
        logger.info(
            "Generation for turn %s aborted by client disconnect after %d chars",
            self._session.turn_id, len(self._session.content),
        )
        return RelayOutcome(self._session.content, CLIENT_DISCONNECTED, cancelled=True)

    @staticmethod
    async def _close_consumer(consumer: asyncio.Task[None]) -> None:
        """Cancel the consumer and wait until the upstream stream is closed."""
        consumer.cancel()
        try:
            await consumer
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("Upstream stream raised while closing", exc_info=True)

    async def _consume(self, messages: list[dict]) -> None:
        stream = self._provider.stream_text(messages, system=self._system)
        async with contextlib.aclosing(stream):
            async for delta in stream:
                if not delta:
                    continue
                self._session.append(delta)
                self._writer.emit(EventKind.DELTA, delta)

                if len(self._session.pending) >= self._persist_threshold:
                    self._gate.flush_pending(self._session)
