"""Chat messages exchanged between the two parties of a match."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..models import ChatMessage

if TYPE_CHECKING:
    from .store import MarketStore


class MessageDB:
    """Manages the chat_messages table."""

    def __init__(self, store: MarketStore) -> None:
        self._store = store

    def add(
        self, match_id: str, sender_id: str, sender_display_name: str, text: str
    ) -> ChatMessage:
        message_id = self._store.new_id()
        self._store.execute(
            """INSERT INTO chat_messages (id, match_id, sender_id, sender_display_name, text)
               VALUES (?, ?, ?, ?, ?)""",
            (message_id, match_id, sender_id, sender_display_name, text),
        )
        self._store.commit()
        row = self._store.fetchone(
            "SELECT * FROM chat_messages WHERE id = ?", (message_id,)
        )
        return ChatMessage.from_row(row)

    def list_for_match(self, match_id: str) -> list[ChatMessage]:
        """Return a match's messages, oldest first."""
        rows = self._store.fetchall(
            """SELECT * FROM chat_messages
               WHERE match_id = ?
               ORDER BY created_at, rowid""",
            (match_id,),
        )
        return [ChatMessage.from_row(r) for r in rows]
