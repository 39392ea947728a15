"""
Idempotency markers for inbound webhook deliveries.
"""

import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from ...utils.timezone import to_utc_iso, utc_now
from .base import SQLiteStore


class DedupStore(SQLiteStore):
    """Remembers processed provider message ids for a short TTL."""

    _schema = """
        CREATE TABLE IF NOT EXISTS processed_messages (
            message_id TEXT PRIMARY KEY,
            expires_at TEXT NOT NULL
        );
    """

    def __init__(self, db_path: str, ttl_minutes: int = 30):
        super().__init__(db_path)
        self.ttl = timedelta(minutes=ttl_minutes)

    async def record_processed(self, message_id: str, now: Optional[datetime] = None) -> bool:
        """Record ``message_id``; returns True the first time, False for a duplicate."""
        now = now or utc_now()

        def _record(conn: sqlite3.Connection) -> bool:
            conn.execute(
                "DELETE FROM processed_messages WHERE expires_at <= ?", (to_utc_iso(now),)
            )
            cur = conn.execute(
                "INSERT OR IGNORE INTO processed_messages (message_id, expires_at) VALUES (?, ?)",
                (message_id, to_utc_iso(now + self.ttl)),
            )
            return cur.rowcount == 1

        return await self._execute(_record)
