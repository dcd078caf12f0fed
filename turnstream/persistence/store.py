"""Chat store: the storage collaborator of the streaming coordinator.

Wraps the conversations, messages and api_keys tables with the narrow
set of operations a streaming turn needs, converting rows to Pydantic
records.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

import aiosqlite

from turnstream.schemas.chat import (
    Conversation,
    Message,
    MessageRole,
    Turn,
    TurnStatus,
)

logger = logging.getLogger(__name__)

# Fixed-width so lexical order in SQLite equals chronological order
_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def _now() -> datetime:
    return datetime.now(UTC)


def _ts(value: datetime) -> str:
    return value.astimezone(UTC).strftime(_TS_FORMAT)


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class ChatStore:
    """Persistent chat store backed by SQLite.

    All methods are async and operate on an aiosqlite connection
    initialized by database.init_db().
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._db.row_factory = aiosqlite.Row

    # ── Conversations ─────────────────────────────────────────

    async def create_conversation(
        self, user_id: str, title: str = "New chat"
    ) -> Conversation:
        now = _ts(_now())
        conversation_id = str(uuid.uuid4())
        await self._db.execute(
            """
            INSERT INTO conversations (id, user_id, title, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (conversation_id, user_id, title, now, now),
        )
        await self._db.commit()
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            raise RuntimeError(f"Conversation {conversation_id} missing after insert")
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        async with self._db.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def find_conversation(
        self, conversation_id: str, owner_id: str
    ) -> Conversation | None:
        """Find a live conversation owned by the given user."""
        async with self._db.execute(
            """
            SELECT * FROM conversations
            WHERE id = ? AND user_id = ? AND deleted_at IS NULL
            """,
            (conversation_id, owner_id),
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def soft_delete_conversation(self, conversation_id: str) -> None:
        now = _ts(_now())
        await self._db.execute(
            "UPDATE conversations SET deleted_at = ?, updated_at = ? WHERE id = ?",
            (now, now, conversation_id),
        )
        await self._db.commit()

    async def touch_conversation_activity(self, conversation_id: str) -> None:
        """Bump the conversation's last-activity marker to now."""
        now = _ts(_now())
        await self._db.execute(
            "UPDATE conversations SET last_message_at = ?, updated_at = ? WHERE id = ?",
            (now, now, conversation_id),
        )
        await self._db.commit()

    # ── Messages ──────────────────────────────────────────────

    async def add_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        *,
        created_at: datetime | None = None,
    ) -> Message:
        """Insert a plain stored message (user, system, tool or assistant)."""
        message_id = str(uuid.uuid4())
        stamp = _ts(created_at or _now())
        await self._db.execute(
            """
            INSERT INTO messages (id, conversation_id, role, content, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (message_id, conversation_id, role.value, content, stamp, stamp),
        )
        await self._db.commit()
        return Message(
            id=message_id,
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=datetime.fromisoformat(stamp),
        )

    async def find_trigger_message(
        self, message_id: str, conversation_id: str
    ) -> Message | None:
        """Find a USER message belonging to the conversation."""
        async with self._db.execute(
            """
            SELECT * FROM messages
            WHERE id = ? AND conversation_id = ? AND role = ?
            """,
            (message_id, conversation_id, MessageRole.USER.value),
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_message(row) if row else None

    async def list_context_messages(
        self, conversation_id: str, up_to: datetime, limit: int
    ) -> list[Message]:
        """Return up to ``limit`` messages at or before ``up_to``, most recent first."""
        async with self._db.execute(
            """
            SELECT * FROM messages
            WHERE conversation_id = ? AND created_at <= ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (conversation_id, _ts(up_to), limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    # ── Turns ─────────────────────────────────────────────────

    async def create_turn_placeholder(
        self,
        conversation_id: str,
        trigger_message_id: str,
        provider_id: str,
        model_id: str,
    ) -> Turn:
        """Create an empty ASSISTANT message in STREAMING status."""
        turn_id = str(uuid.uuid4())
        now = _ts(_now())
        await self._db.execute(
            """
            INSERT INTO messages
                (id, conversation_id, role, content, reply_to_id, provider_id,
                 model_id, status, error_message, created_at, updated_at)
            VALUES (?, ?, ?, '', ?, ?, ?, ?, NULL, ?, ?)
            """,
            (
                turn_id,
                conversation_id,
                MessageRole.ASSISTANT.value,
                trigger_message_id,
                provider_id,
                model_id,
                TurnStatus.STREAMING.value,
                now,
                now,
            ),
        )
        await self._db.commit()
        turn = await self.get_turn(turn_id)
        if turn is None:
            raise RuntimeError(f"Turn {turn_id} missing after insert")
        return turn

    async def get_turn(self, turn_id: str) -> Turn | None:
        async with self._db.execute(
            "SELECT * FROM messages WHERE id = ? AND role = ?",
            (turn_id, MessageRole.ASSISTANT.value),
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_turn(row) if row else None

    async def update_turn_content(self, turn_id: str, content: str) -> None:
        """Checkpoint a content snapshot of a turn that is still streaming."""
        await self._db.execute(
            """
            UPDATE messages SET content = ?, updated_at = ?
            WHERE id = ? AND status = ?
            """,
            (content, _ts(_now()), turn_id, TurnStatus.STREAMING.value),
        )
        await self._db.commit()

    async def update_turn_terminal(
        self,
        turn_id: str,
        content: str,
        status: TurnStatus,
        error: str | None = None,
    ) -> Turn:
        """Write the terminal content and status of a turn and return it."""
        await self._db.execute(
            """
            UPDATE messages
            SET content = ?, status = ?, error_message = ?, updated_at = ?
            WHERE id = ?
            """,
            (content, status.value, error, _ts(_now()), turn_id),
        )
        await self._db.commit()
        turn = await self.get_turn(turn_id)
        if turn is None:
            raise RuntimeError(f"Turn {turn_id} disappeared before its terminal write")
        return turn

    # ── API keys ──────────────────────────────────────────────

    async def create_api_key(
        self, user_id: str, key_hash: str, key_prefix: str, label: str = ""
    ) -> None:
        await self._db.execute(
            """
            INSERT INTO api_keys (user_id, key_hash, key_prefix, label, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, key_hash, key_prefix, label, _ts(_now())),
        )
        await self._db.commit()

    async def find_api_key_owner(self, key_hash: str) -> str | None:
        """Return the user id for a live (non-revoked) key hash."""
        async with self._db.execute(
            "SELECT user_id, revoked_at FROM api_keys WHERE key_hash = ?",
            (key_hash,),
        ) as cursor:
            row = await cursor.fetchone()
        if not row or row["revoked_at"]:
            return None

        await self._db.execute(
            "UPDATE api_keys SET last_used_at = ? WHERE key_hash = ?",
            (_ts(_now()), key_hash),
        )
        await self._db.commit()
        return row["user_id"]

    async def revoke_api_key(self, key_hash: str) -> None:
        await self._db.execute(
            "UPDATE api_keys SET revoked_at = ? WHERE key_hash = ?",
            (_ts(_now()), key_hash),
        )
        await self._db.commit()

    # ── Row conversion ────────────────────────────────────────

    @staticmethod
    def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            last_message_at=_parse_ts(row["last_message_at"]),
            deleted_at=_parse_ts(row["deleted_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> Message:
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=MessageRole(row["role"]),
            content=row["content"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_turn(row: aiosqlite.Row) -> Turn:
        return Turn(
            id=row["id"],
            conversation_id=row["conversation_id"],
            trigger_message_id=row["reply_to_id"] or "",
            content=row["content"],
            provider_id=row["provider_id"] or "",
            model_id=row["model_id"] or "",
            status=TurnStatus(row["status"] or TurnStatus.COMPLETED.value),
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
