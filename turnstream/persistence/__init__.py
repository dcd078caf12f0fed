"""turnstream persistence layer.

Provides SQLite-backed storage for conversations, messages, assistant
turns and API keys.
"""

from turnstream.persistence.database import close_db, init_db
from turnstream.persistence.store import ChatStore

__all__ = [
    "ChatStore",
    "close_db",
    "init_db",
]
