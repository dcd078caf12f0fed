"""Turn lifecycle state machine.

PENDING -> STREAMING -> COMPLETED | FAILED

PENDING lives only in memory until the durable placeholder exists. Only
the session supervisor drives the terminal transition, after the write
chain has drained, so a stale checkpoint can never clobber terminal
content.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from turnstream.errors import InvalidTransitionError
from turnstream.persistence.store import ChatStore
from turnstream.schemas.chat import Turn, TurnStatus

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[TurnStatus, frozenset[TurnStatus]] = {
    TurnStatus.PENDING: frozenset({TurnStatus.STREAMING}),
    TurnStatus.STREAMING: frozenset({TurnStatus.COMPLETED, TurnStatus.FAILED}),
    TurnStatus.COMPLETED: frozenset(),
    TurnStatus.FAILED: frozenset(),
}


class TurnLifecycle:
    """Owns the status of one turn and the writes that change it."""

    def __init__(self, store: ChatStore) -> None:
        self._store = store
        self._state = TurnStatus.PENDING
        self._turn: Turn | None = None

    @property
    def state(self) -> TurnStatus:
        return self._state

    @property
    def turn(self) -> Turn | None:
        return self._turn

    async def open(
        self,
        conversation_id: str,
        trigger_message_id: str,
        provider_id: str,
        model_id: str,
    ) -> Turn:
        """Create the durable STREAMING placeholder."""
        self._check(TurnStatus.STREAMING)
        self._turn = await self._store.create_turn_placeholder(
            conversation_id, trigger_message_id, provider_id, model_id,
        )
        self._state = TurnStatus.STREAMING
        logger.info(
            "Turn %s streaming (conversation %s, model %s)",
            self._turn.id, conversation_id, model_id,
        )
        return self._turn

    async def complete(self, content: str) -> Turn:
        """STREAMING -> COMPLETED with the full text; bumps conversation activity."""
        turn = await self._finish(content, TurnStatus.COMPLETED, None)
        try:
            await self._store.touch_conversation_activity(turn.conversation_id)
        except Exception:
            logger.exception(
                "Failed to bump activity of conversation %s", turn.conversation_id,
            )
        return turn

    async def fail(self, content: str, error: str) -> Turn:
        """STREAMING -> FAILED, preserving the partial text."""
        return await self._finish(content, TurnStatus.FAILED, error)

    async def _finish(
        self, content: str, status: TurnStatus, error: str | None
    ) -> Turn:
        self._check(status)
        if self._turn is None:
            raise RuntimeError("Turn is streaming without a placeholder")
        # Exactly one terminal write, even if it fails
        self._state = status

        try:
            self._turn = await self._store.update_turn_terminal(
                self._turn.id, content, status, error,
            )
        except Exception:
            logger.exception(
                "Terminal write failed for turn %s (%s)", self._turn.id, status,
            )
            self._turn = self._turn.model_copy(update={
                "content": content,
                "status": status,
                "error_message": error,
                "updated_at": datetime.now(UTC),
            })

        logger.info("Turn %s %s (%d chars)", self._turn.id, status, len(content))
        return self._turn

    def _check(self, target: TurnStatus) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidTransitionError(self._state.value, target.value)
