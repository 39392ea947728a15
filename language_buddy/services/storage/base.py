"""
Shared SQLite plumbing for the persistent stores.
"""

import asyncio
import sqlite3
from typing import Callable, TypeVar

T = TypeVar("T")


class SQLiteStore:
    """Base class for stores kept in a single SQLite file.

    Every call opens a short-lived connection on a worker thread. The
    asyncio lock serializes calls made through one store instance;
    cross-instance safety comes from SQLite's own locking.
    """

    _schema: str = ""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = asyncio.Lock()
        self._table_ready = False

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    async def _ensure_table(self) -> None:
        """Ensure the store's tables exist."""
        if self._table_ready:
            return

        def _create_table():
            conn = self._connect()
            try:
                conn.executescript(self._schema)
                conn.commit()
            finally:
                conn.close()

        await asyncio.to_thread(_create_table)
        self._table_ready = True

    async def _execute(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn`` with a fresh connection and commit on success."""
        await self._ensure_table()

        async with self._lock:
            def _run() -> T:
                conn = self._connect()
                try:
                    result = fn(conn)
                    conn.commit()
                    return result
                except Exception:
                    conn.rollback()
                    raise
                finally:
                    conn.close()

            return await asyncio.to_thread(_run)

    async def ping(self) -> None:
        """Raise if the database cannot be opened and queried."""
        await self._execute(lambda conn: conn.execute("SELECT 1").fetchone())
