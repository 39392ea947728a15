"""
Conversation checkpoint store.
"""

import json
import sqlite3
from datetime import datetime, timedelta
from typing import List, Optional

from ...core.models import ChatMessage, Checkpoint
from ...utils.timezone import utc_now
from .base import SQLiteStore

# A claim that never got its first exchange stops blocking new sessions
_CLAIM_TIMEOUT = timedelta(minutes=5)


class CheckpointStore(SQLiteStore):
    """Per-phone message history with conversation timing metadata."""

    _schema = """
        CREATE TABLE IF NOT EXISTS checkpoints (
            phone TEXT PRIMARY KEY,
            messages TEXT NOT NULL,
            conversation_started_at TEXT NOT NULL,
            last_message_at TEXT NOT NULL
        );
    """

    def __init__(self, db_path: str, ttl_hours: int = 72):
        super().__init__(db_path)
        self.ttl = timedelta(hours=ttl_hours)

    def is_expired(self, checkpoint: Checkpoint, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) - checkpoint.last_message_at >= self.ttl

    async def load(self, phone: str) -> Optional[Checkpoint]:
        """Return the stored checkpoint, expired or not."""
        def _fetch(conn: sqlite3.Connection) -> Optional[sqlite3.Row]:
            return conn.execute(
                "SELECT * FROM checkpoints WHERE phone = ?", (phone,)
            ).fetchone()

        row = await self._execute(_fetch)
        if row is None:
            return None
        return Checkpoint(
            phone=row["phone"],
            messages=[ChatMessage.model_validate(m) for m in json.loads(row["messages"])],
            conversation_started_at=datetime.fromisoformat(row["conversation_started_at"]),
            last_message_at=datetime.fromisoformat(row["last_message_at"]),
        )

    async def get_active(
        self, phone: str, now: Optional[datetime] = None
    ) -> Optional[Checkpoint]:
        """Return the checkpoint only if it has messages and is not expired."""
        checkpoint = await self.load(phone)
        if checkpoint is None or not checkpoint.messages:
            return None
        if self.is_expired(checkpoint, now):
            return None
        return checkpoint

    async def save(self, checkpoint: Checkpoint) -> None:
        messages: List[dict] = [m.model_dump(mode="json") for m in checkpoint.messages]

        def _write(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT OR REPLACE INTO checkpoints (
                    phone, messages, conversation_started_at, last_message_at
                ) VALUES (?, ?, ?, ?)
                """,
                (
                    checkpoint.phone,
                    json.dumps(messages, ensure_ascii=False),
                    checkpoint.conversation_started_at.isoformat(),
                    checkpoint.last_message_at.isoformat(),
                ),
            )

        await self._execute(_write)

    def _row_expired(self, row: sqlite3.Row, now: datetime) -> bool:
        last = datetime.fromisoformat(row["last_message_at"])
        if row["messages"] == "[]":
            return now - last >= _CLAIM_TIMEOUT
        return now - last >= self.ttl

    async def claim_session(self, phone: str, now: datetime) -> bool:
        """Mark a new conversation as starting for ``phone``.

        Returns False when a live conversation or another pending claim
        already exists. The claim is an empty checkpoint row that the
        first appended exchange fills in.
        """
        def _claim(conn: sqlite3.Connection) -> bool:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT messages, last_message_at FROM checkpoints WHERE phone = ?", (phone,)
            ).fetchone()
            if row is not None and not self._row_expired(row, now):
                return False
            conn.execute(
                """
                INSERT OR REPLACE INTO checkpoints (
                    phone, messages, conversation_started_at, last_message_at
                ) VALUES (?, '[]', ?, ?)
                """,
                (phone, now.isoformat(), now.isoformat()),
            )
            return True

        return await self._execute(_claim)

    async def release_session(self, phone: str) -> None:
        """Drop a claim that never received any messages."""
        def _release(conn: sqlite3.Connection) -> None:
            conn.execute(
                "DELETE FROM checkpoints WHERE phone = ? AND messages = '[]'", (phone,)
            )

        await self._execute(_release)

    async def append_messages(
        self, phone: str, messages: List[ChatMessage], now: datetime
    ) -> None:
        """Append to the live conversation, or start a new one if it expired.

        Read and write happen in one transaction, so exchanges recorded
        by concurrent deliveries are all kept.
        """
        new = [m.model_dump(mode="json") for m in messages]

        def _append(conn: sqlite3.Connection) -> None:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT * FROM checkpoints WHERE phone = ?", (phone,)
            ).fetchone()
            if row is None or self._row_expired(row, now):
                stored, started_at = [], now.isoformat()
            else:
                stored, started_at = json.loads(row["messages"]), row["conversation_started_at"]
            conn.execute(
                """
                INSERT OR REPLACE INTO checkpoints (
                    phone, messages, conversation_started_at, last_message_at
                ) VALUES (?, ?, ?, ?)
                """,
                (phone, json.dumps(stored + new, ensure_ascii=False), started_at, now.isoformat()),
            )

        await self._execute(_append)

    async def delete(self, phone: str) -> None:
        def _delete(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM checkpoints WHERE phone = ?", (phone,))

        await self._execute(_delete)
