#  Map Vault - Historian Chat History
#
#  Per-user archive of historian questions and answers. Every read and
#  delete is scoped to the owner; another user's entry looks like a
#  missing one.
#
#  Depends on: db/connection.py, mapvault/exceptions.py
#  Used by:    container.py, routes/chat_history.py

import logging
import time
import uuid

from mapvault.db.connection import Database
from mapvault.exceptions import NotFoundError

logger = logging.getLogger("mapvault.chat_history")

DEFAULT_PAGE_SIZE = 100


def _entry_out(row) -> dict:
    return {
        "id": row["id"],
        "question": row["question"],
        "answer": row["answer"],
        "created_at": row["created_at"],
    }


class ChatHistoryService:
    def __init__(self, db: Database):
        self._db = db

    async def record(self, user_id: str, question: str, answer: str) -> dict:
        entry_id = str(uuid.uuid4())
        await self._db.execute_write(
            "INSERT INTO chat_history (id, user_id, question, answer, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (entry_id, user_id, question, answer, time.time()),
        )
        return await self.get(user_id, entry_id)

    async def get(self, user_id: str, entry_id: str) -> dict:
        row = await self._db.fetchone(
            "SELECT * FROM chat_history WHERE id = ? AND user_id = ?", (entry_id, user_id),
        )
        if not row:
            raise NotFoundError(f"Chat entry {entry_id} not found")
        return _entry_out(row)

    async def list_for_user(self, user_id: str, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> list[dict]:
        """The user's entries, newest first."""
        rows = await self._db.fetchall(
            "SELECT * FROM chat_history WHERE user_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (user_id, limit, offset),
        )
        return [_entry_out(r) for r in rows]

    async def delete(self, user_id: str, entry_id: str) -> None:
        cursor = await self._db.execute_write(
            "DELETE FROM chat_history WHERE id = ? AND user_id = ?", (entry_id, user_id),
        )
        if not cursor.rowcount:
            raise NotFoundError(f"Chat entry {entry_id} not found")
        logger.info("Chat entry %s removed", entry_id)
