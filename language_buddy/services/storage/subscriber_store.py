"""
Subscriber store with atomic per-phone counters.
"""

import json
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from ...core.models import (
    Digest,
    StreakData,
    Subscriber,
    SubscriberMetadata,
    SubscriberProfile,
)
from ...utils.logging import get_logger
from .base import SQLiteStore

logger = get_logger("buddy.store")

# Date columns that may be claimed with compare-and-set
_CLAIMABLE_COLUMNS = ("last_proactive_sent_date", "last_nightly_digest_run")


@dataclass
class DateClaim:
    """Outcome of a compare-and-set on a per-day marker."""
    acquired: bool
    previous: Optional[date]


def _to_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _from_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


class SubscriberStore(SQLiteStore):
    """Durable subscriber records.

    Usage counters and per-day markers live in their own columns so that
    they can be changed with single guarded UPDATE statements instead of
    read-modify-write cycles.
    """

    _schema = """
        CREATE TABLE IF NOT EXISTS subscribers (
            phone TEXT PRIMARY KEY,
            profile TEXT NOT NULL,
            signup_timestamp TEXT NOT NULL,
            is_premium INTEGER NOT NULL DEFAULT 0,
            conversations_started_today INTEGER NOT NULL DEFAULT 0,
            last_conversation_date TEXT,
            digests TEXT NOT NULL DEFAULT '[]',
            streak_data TEXT NOT NULL DEFAULT '{}',
            last_proactive_sent_date TEXT,
            last_nightly_digest_run TEXT
        );
    """

    @staticmethod
    def _row_to_subscriber(row: sqlite3.Row) -> Subscriber:
        digests = [Digest.model_validate(d) for d in json.loads(row["digests"] or "[]")]
        metadata = SubscriberMetadata(
            signup_timestamp=datetime.fromisoformat(row["signup_timestamp"]),
            is_premium=bool(row["is_premium"]),
            conversations_started_today=row["conversations_started_today"],
            last_conversation_date=_to_date(row["last_conversation_date"]),
            digests=digests,
            streak_data=StreakData.model_validate(json.loads(row["streak_data"] or "{}")),
            last_proactive_sent_date=_to_date(row["last_proactive_sent_date"]),
            last_nightly_digest_run=_to_date(row["last_nightly_digest_run"]),
        )
        return Subscriber(
            phone=row["phone"],
            profile=SubscriberProfile.model_validate_json(row["profile"]),
            metadata=metadata,
        )

    async def create_subscriber(self, subscriber: Subscriber) -> bool:
        """Insert ``subscriber``; returns False if the phone already exists."""
        meta = subscriber.metadata

        def _insert(conn: sqlite3.Connection) -> bool:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO subscribers (
                    phone, profile, signup_timestamp, is_premium,
                    conversations_started_today, last_conversation_date,
                    digests, streak_data, last_proactive_sent_date,
                    last_nightly_digest_run
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    subscriber.phone,
                    subscriber.profile.model_dump_json(),
                    meta.signup_timestamp.isoformat(),
                    int(meta.is_premium),
                    meta.conversations_started_today,
                    _from_date(meta.last_conversation_date),
                    json.dumps([d.model_dump(mode="json") for d in meta.digests]),
                    meta.streak_data.model_dump_json(),
                    _from_date(meta.last_proactive_sent_date),
                    _from_date(meta.last_nightly_digest_run),
                ),
            )
            return cur.rowcount == 1

        created = await self._execute(_insert)
        if created:
            logger.info(f"store: subscriber created for {subscriber.phone}")
        return created

    async def get_subscriber(self, phone: str) -> Optional[Subscriber]:
        """Return the subscriber for ``phone`` or None."""
        def _fetch(conn: sqlite3.Connection) -> Optional[sqlite3.Row]:
            cur = conn.execute("SELECT * FROM subscribers WHERE phone = ?", (phone,))
            return cur.fetchone()

        row = await self._execute(_fetch)
        return self._row_to_subscriber(row) if row else None

    async def list_subscribers(self) -> List[Subscriber]:
        """Return every subscriber."""
        def _fetch(conn: sqlite3.Connection) -> List[sqlite3.Row]:
            return conn.execute("SELECT * FROM subscribers ORDER BY phone").fetchall()

        rows = await self._execute(_fetch)
        return [self._row_to_subscriber(row) for row in rows]

    async def set_premium(self, phone: str, is_premium: bool) -> None:
        def _write(conn: sqlite3.Connection) -> None:
            conn.execute(
                "UPDATE subscribers SET is_premium = ? WHERE phone = ?",
                (int(is_premium), phone),
            )

        await self._execute(_write)

    async def increment_conversation_count(self, phone: str, today: date) -> int:
        """Count a conversation start on ``today``, resetting on a new day.

        Returns the count after the increment.
        """
        def _increment(conn: sqlite3.Connection) -> int:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(
                """
                UPDATE subscribers SET
                    conversations_started_today = CASE
                        WHEN last_conversation_date = :today
                        THEN conversations_started_today + 1
                        ELSE 1
                    END,
                    last_conversation_date = :today
                WHERE phone = :phone
                """,
                {"phone": phone, "today": today.isoformat()},
            )
            row = conn.execute(
                "SELECT conversations_started_today FROM subscribers WHERE phone = ?",
                (phone,),
            ).fetchone()
            return row[0] if row else 0

        return await self._execute(_increment)

    async def try_start_conversation(self, phone: str, today: date, limit: int) -> bool:
        """Atomically count a conversation start if ``today`` is under ``limit``."""
        def _try(conn: sqlite3.Connection) -> bool:
            cur = conn.execute(
                """
                UPDATE subscribers SET
                    conversations_started_today = CASE
                        WHEN last_conversation_date = :today
                        THEN conversations_started_today + 1
                        ELSE 1
                    END,
                    last_conversation_date = :today
                WHERE phone = :phone
                  AND :limit > 0
                  AND (
                    last_conversation_date IS NULL
                    OR last_conversation_date != :today
                    OR conversations_started_today < :limit
                  )
                """,
                {"phone": phone, "today": today.isoformat(), "limit": limit},
            )
            return cur.rowcount == 1

        return await self._execute(_try)

    async def release_conversation(self, phone: str, today: date) -> None:
        """Give back a conversation start counted on ``today``."""
        def _release(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                UPDATE subscribers
                SET conversations_started_today = conversations_started_today - 1
                WHERE phone = ?
                  AND last_conversation_date = ?
                  AND conversations_started_today > 0
                """,
                (phone, today.isoformat()),
            )

        await self._execute(_release)

    async def _claim_date(self, column: str, phone: str, today: date) -> DateClaim:
        if column not in _CLAIMABLE_COLUMNS:
            raise ValueError(f"Column {column} cannot be claimed")

        def _claim(conn: sqlite3.Connection) -> DateClaim:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                f"SELECT {column} FROM subscribers WHERE phone = ?", (phone,)
            ).fetchone()
            if row is None:
                return DateClaim(acquired=False, previous=None)
            previous = _to_date(row[0])
            cur = conn.execute(
                f"""
                UPDATE subscribers SET {column} = :today
                WHERE phone = :phone AND ({column} IS NULL OR {column} != :today)
                """,
                {"phone": phone, "today": today.isoformat()},
            )
            return DateClaim(acquired=cur.rowcount == 1, previous=previous)

        return await self._execute(_claim)

    async def _release_date(
        self, column: str, phone: str, today: date, previous: Optional[date]
    ) -> None:
        if column not in _CLAIMABLE_COLUMNS:
            raise ValueError(f"Column {column} cannot be released")

        def _release(conn: sqlite3.Connection) -> None:
            conn.execute(
                f"UPDATE subscribers SET {column} = ? WHERE phone = ? AND {column} = ?",
                (_from_date(previous), phone, today.isoformat()),
            )

        await self._execute(_release)

    async def claim_proactive_send(self, phone: str, today: date) -> DateClaim:
        """Mark ``today`` as the proactive day unless it already is."""
        return await self._claim_date("last_proactive_sent_date", phone, today)

    async def release_proactive_send(
        self, phone: str, today: date, previous: Optional[date]
    ) -> None:
        await self._release_date("last_proactive_sent_date", phone, today, previous)

    async def claim_nightly_digest(self, phone: str, today: date) -> DateClaim:
        """Mark ``today`` as the nightly digest day unless it already is."""
        return await self._claim_date("last_nightly_digest_run", phone, today)

    async def release_nightly_digest(
        self, phone: str, today: date, previous: Optional[date]
    ) -> None:
        await self._release_date("last_nightly_digest_run", phone, today, previous)

    async def append_digest(
        self, phone: str, digest: Digest, keep_after: datetime
    ) -> List[Digest]:
        """Store ``digest`` and drop digests older than ``keep_after``."""
        def _append(conn: sqlite3.Connection) -> List[Digest]:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT digests FROM subscribers WHERE phone = ?", (phone,)
            ).fetchone()
            if row is None:
                return []
            digests = [Digest.model_validate(d) for d in json.loads(row[0] or "[]")]
            digests.append(digest)
            digests = [d for d in digests if d.timestamp >= keep_after]
            conn.execute(
                "UPDATE subscribers SET digests = ? WHERE phone = ?",
                (json.dumps([d.model_dump(mode="json") for d in digests]), phone),
            )
            return digests

        return await self._execute(_append)

    async def update_streak(self, phone: str, today: date) -> Optional[StreakData]:
        """Advance the practice streak for ``today``."""
        def _update(conn: sqlite3.Connection) -> Optional[StreakData]:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT streak_data FROM subscribers WHERE phone = ?", (phone,)
            ).fetchone()
            if row is None:
                return None
            streak = StreakData.model_validate(json.loads(row[0] or "{}")).advanced(today)
            conn.execute(
                "UPDATE subscribers SET streak_data = ? WHERE phone = ?",
                (streak.model_dump_json(), phone),
            )
            return streak

        return await self._execute(_update)
