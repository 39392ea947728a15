"""
Onboarding state store with expiry.
"""

import json
import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from ...core.models import OnboardingState
from ...utils.timezone import to_utc_iso, utc_now
from .base import SQLiteStore


class OnboardingStore(SQLiteStore):
    """Keeps OnboardingState rows; a missing or expired row means "not onboarding"."""

    _schema = """
        CREATE TABLE IF NOT EXISTS onboarding_states (
            phone TEXT PRIMARY KEY,
            state TEXT NOT NULL,
            expires_at TEXT NOT NULL
        );
    """

    def __init__(self, db_path: str, ttl_hours: int = 24):
        super().__init__(db_path)
        self.ttl = timedelta(hours=ttl_hours)

    async def get_state(
        self, phone: str, now: Optional[datetime] = None
    ) -> Optional[OnboardingState]:
        """Return the live onboarding state for ``phone``."""
        now = now or utc_now()

        def _fetch(conn: sqlite3.Connection) -> Optional[str]:
            conn.execute(
                "DELETE FROM onboarding_states WHERE phone = ? AND expires_at <= ?",
                (phone, to_utc_iso(now)),
            )
            row = conn.execute(
                "SELECT state FROM onboarding_states WHERE phone = ?", (phone,)
            ).fetchone()
            return row[0] if row else None

        state_json = await self._execute(_fetch)
        if state_json is None:
            return None
        return OnboardingState.model_validate_json(state_json)

    async def save_state(self, state: OnboardingState, now: Optional[datetime] = None) -> bool:
        """Persist ``state`` if nobody saved a newer version since it was loaded.

        Returns False on a version conflict, which includes a previously
        loaded state whose row has since disappeared. On success the
        state's version is bumped and its expiry pushed forward.
        """
        now = now or utc_now()
        expires_at = now + self.ttl
        saved = state.model_copy(update={"version": state.version + 1})

        def _write(conn: sqlite3.Connection) -> bool:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT state FROM onboarding_states WHERE phone = ? AND expires_at > ?",
                (state.phone, to_utc_iso(now)),
            ).fetchone()
            if row is None:
                # Loaded earlier, then completed or expired
                if state.version != 0:
                    return False
            elif json.loads(row[0]).get("version", 0) != state.version:
                return False
            conn.execute(
                "INSERT OR REPLACE INTO onboarding_states (phone, state, expires_at) VALUES (?, ?, ?)",
                (state.phone, saved.model_dump_json(), to_utc_iso(expires_at)),
            )
            return True

        ok = await self._execute(_write)
        if ok:
            state.version = saved.version
        return ok

    async def delete_state(self, phone: str) -> None:
        def _delete(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM onboarding_states WHERE phone = ?", (phone,))

        await self._execute(_delete)
