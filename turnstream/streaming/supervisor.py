"""Session supervisor: wires one streaming turn together and tears it down.

A turn is handled in two phases. ``prepare()`` checks preconditions and
creates the STREAMING placeholder; any failure there happens before a
Turn exists. ``stream()`` runs the heartbeat, the checkpoint gate and the
generation relay, and its teardown runs on every exit path: it stops the
timers, drains the write chain, performs exactly one terminal transition,
emits exactly one terminal event and releases the connection.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass

from turnstream.errors import ConversationNotFoundError, TriggerMessageNotFoundError
from turnstream.persistence.store import ChatStore
from turnstream.providers.base import ModelProvider
from turnstream.providers.registry import ModelCatalog
from turnstream.schemas.chat import Turn
from turnstream.schemas.config import StreamConfig
from turnstream.schemas.streaming import EventKind, StreamError
from turnstream.streaming.context import to_model_messages
from turnstream.streaming.gate import PersistenceGate
from turnstream.streaming.heartbeat import Heartbeat
from turnstream.streaming.lifecycle import TurnLifecycle
from turnstream.streaming.protocol import ProtocolWriter
from turnstream.streaming.relay import GenerationRelay, describe_error
from turnstream.streaming.session import StreamSession
from turnstream.streaming.transport import SSEChannel

logger = logging.getLogger(__name__)

# Recorded when teardown runs without the relay having reported an outcome
_INTERRUPTED = "Stream interrupted"


async def _run_to_completion(teardown: Awaitable[Turn]) -> Turn:
    """Await ``teardown`` even if the calling task is cancelled meanwhile.

    A cancellation that arrives while teardown is running is held back
    until the terminal write and event are done, then re-raised.
    """
    task = asyncio.ensure_future(teardown)
    cancelled = False
    while not task.done():
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.done():
                raise
            cancelled = True
    if cancelled:
        raise asyncio.CancelledError
    return task.result()


@dataclass(frozen=True)
class TurnRequest:
    """One client request to stream the reply to a user message."""

    conversation_id: str
    trigger_message_id: str
    owner_id: str
    provider_id: str | None = None
    model_id: str | None = None


@dataclass
class PreparedTurn:
    """A validated request with its placeholder already persisted."""

    turn: Turn
    provider: ModelProvider
    messages: list[dict]
    lifecycle: TurnLifecycle


class SessionSupervisor:
    """Runs streaming turns against a store and a model catalog."""

    def __init__(
        self,
        store: ChatStore,
        catalog: ModelCatalog,
        config: StreamConfig | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._config = config or StreamConfig()

    async def run(self, request: TurnRequest, channel: SSEChannel) -> Turn:
        """Validate, create the placeholder, and stream the turn to completion."""
        prepared = await self.prepare(request)
        return await self.stream(prepared, channel)

    async def prepare(self, request: TurnRequest) -> PreparedTurn:
        """Check preconditions and create the STREAMING placeholder.

        Raises:
            ModelNotAvailableError: If the provider/model pair does not resolve.
            ConversationNotFoundError: If the conversation is missing, deleted,
                or owned by someone else.
            TriggerMessageNotFoundError: If the user message is not part of
                the conversation.
        """
        provider_id = request.provider_id or self._config.default_provider
        model_id = request.model_id or self._config.default_model
        provider = self._catalog.resolve_model(provider_id, model_id)

        conversation = await self._store.find_conversation(
            request.conversation_id, request.owner_id,
        )
        if conversation is None:
            raise ConversationNotFoundError(request.conversation_id)

        trigger = await self._store.find_trigger_message(
            request.trigger_message_id, conversation.id,
        )
        if trigger is None:
            raise TriggerMessageNotFoundError(request.trigger_message_id)

        recent = await self._store.list_context_messages(
            conversation.id, trigger.created_at, self._config.context_limit,
        )
        messages = to_model_messages(reversed(recent))

        lifecycle = TurnLifecycle(self._store)
        turn = await lifecycle.open(
            conversation.id, trigger.id, provider.provider_id, provider.model_id,
        )
        return PreparedTurn(
            turn=turn, provider=provider, messages=messages, lifecycle=lifecycle,
        )

    async def stream(self, prepared: PreparedTurn, channel: SSEChannel) -> Turn:
        """Stream a prepared turn over the channel and finalize it."""
        turn = prepared.turn
        session = StreamSession(turn.id)
        writer = ProtocolWriter(channel)
        gate = PersistenceGate(
            self._store, turn.id, flush_interval=self._config.persist_interval,
        )
        heartbeat = Heartbeat(writer, self._config.heartbeat_interval)
        relay = GenerationRelay(
            prepared.provider,
            writer,
            gate,
            session,
            persist_threshold=self._config.persist_threshold,
            system=self._config.system_prompt,
        )

        channel.add_disconnect_listener(session.cancel)
        if channel.disconnected:
            session.cancel()

        writer.comment("stream started")
        heartbeat.start()
        gate.start(session)

        error: str | None = _INTERRUPTED
        try:
            outcome = await relay.run(prepared.messages)
            error = outcome.error
        except Exception as exc:
            logger.exception("Streaming turn %s failed unexpectedly", turn.id)
            error = describe_error(exc)
        finally:
            final = await _run_to_completion(self._teardown(
                prepared.lifecycle, session, writer, gate, heartbeat, channel, error,
            ))
        return final

    async def _teardown(
        self,
        lifecycle: TurnLifecycle,
        session: StreamSession,
        writer: ProtocolWriter,
        gate: PersistenceGate,
        heartbeat: Heartbeat,
        channel: SSEChannel,
        error: str | None,
    ) -> Turn:
        try:
            await heartbeat.stop()
            await gate.stop_timer()

            # Final checkpoint, then wait out the chain before the terminal write
            session.take_pending()
            gate.schedule_persist(session.content)
            await gate.drain()

            if error is None:
                turn = await lifecycle.complete(session.content)
                writer.emit(EventKind.DONE, turn.model_dump_json(by_alias=True))
            else:
                turn = await lifecycle.fail(session.content, error)
                payload = StreamError(message=error, failed_turn=turn)
                writer.emit(EventKind.ERROR, payload.model_dump_json(by_alias=True))

            await gate.close()
            return turn
        finally:
            channel.close()
