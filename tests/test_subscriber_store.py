"""
Tests for the SQLite subscriber store.
"""

import asyncio
from datetime import date, datetime, timedelta

import pytest
import pytz

from language_buddy.core.models import Digest, Subscriber, SubscriberMetadata
from language_buddy.services.storage import SubscriberStore

TODAY = date(2025, 3, 10)


@pytest.fixture
def store(tmp_path):
    return SubscriberStore(str(tmp_path / "subscribers.db"))


def _subscriber(phone="100", **metadata):
    return Subscriber(
        phone=phone,
        metadata=SubscriberMetadata(
            signup_timestamp=datetime(2025, 3, 1, tzinfo=pytz.utc), **metadata
        ),
    )


class TestRecords:
    async def test_create_once(self, store):
        assert await store.create_subscriber(_subscriber()) is True
        assert await store.create_subscriber(_subscriber()) is False
        assert len(await store.list_subscribers()) == 1

    async def test_round_trip_keeps_metadata(self, store):
        await store.create_subscriber(
            _subscriber(is_premium=True, last_conversation_date=TODAY, conversations_started_today=2)
        )
        loaded = await store.get_subscriber("100")
        assert loaded.metadata.is_premium is True
        assert loaded.metadata.last_conversation_date == TODAY
        assert loaded.metadata.conversations_started_today == 2
        assert loaded.profile.name == "New User"

    async def test_missing_phone(self, store):
        assert await store.get_subscriber("nope") is None

    async def test_set_premium(self, store):
        await store.create_subscriber(_subscriber())
        await store.set_premium("100", True)
        assert (await store.get_subscriber("100")).metadata.is_premium is True


class TestConversationCounter:
    async def test_increment_resets_on_new_day(self, store):
        await store.create_subscriber(_subscriber())
        assert await store.increment_conversation_count("100", TODAY) == 1
        assert await store.increment_conversation_count("100", TODAY) == 2
        assert await store.increment_conversation_count("100", TODAY + timedelta(days=1)) == 1

    async def test_try_start_respects_limit(self, store):
        await store.create_subscriber(_subscriber())
        results = [await store.try_start_conversation("100", TODAY, 3) for _ in range(4)]
        assert results == [True, True, True, False]
        loaded = await store.get_subscriber("100")
        assert loaded.metadata.conversations_started_today == 3

    async def test_try_start_new_day_resets(self, store):
        await store.create_subscriber(
            _subscriber(conversations_started_today=3, last_conversation_date=TODAY)
        )
        assert await store.try_start_conversation("100", TODAY, 3) is False
        assert await store.try_start_conversation("100", TODAY + timedelta(days=1), 3) is True
        loaded = await store.get_subscriber("100")
        assert loaded.metadata.conversations_started_today == 1

    async def test_zero_limit_never_starts(self, store):
        await store.create_subscriber(_subscriber())
        assert await store.try_start_conversation("100", TODAY, 0) is False

    async def test_concurrent_starts_never_exceed_limit(self, store):
        await store.create_subscriber(_subscriber())
        results = await asyncio.gather(
            *[store.try_start_conversation("100", TODAY, 3) for _ in range(10)]
        )
        assert sum(results) == 3

    async def test_release_gives_back_slot(self, store):
        await store.create_subscriber(_subscriber())
        for _ in range(3):
            await store.try_start_conversation("100", TODAY, 3)
        await store.release_conversation("100", TODAY)
        assert await store.try_start_conversation("100", TODAY, 3) is True

    async def test_release_for_other_day_is_ignored(self, store):
        await store.create_subscriber(_subscriber())
        await store.try_start_conversation("100", TODAY, 3)
        await store.release_conversation("100", TODAY - timedelta(days=1))
        loaded = await store.get_subscriber("100")
        assert loaded.metadata.conversations_started_today == 1


class TestDateClaims:
    async def test_claim_once_per_day(self, store):
        await store.create_subscriber(_subscriber())
        first = await store.claim_proactive_send("100", TODAY)
        second = await store.claim_proactive_send("100", TODAY)
        assert first.acquired is True
        assert first.previous is None
        assert second.acquired is False

    async def test_release_restores_previous(self, store):
        yesterday = TODAY - timedelta(days=1)
        await store.create_subscriber(_subscriber(last_proactive_sent_date=yesterday))
        claim = await store.claim_proactive_send("100", TODAY)
        assert claim.previous == yesterday
        await store.release_proactive_send("100", TODAY, claim.previous)
        loaded = await store.get_subscriber("100")
        assert loaded.metadata.last_proactive_sent_date == yesterday
        assert (await store.claim_proactive_send("100", TODAY)).acquired is True

    async def test_nightly_claim_is_independent(self, store):
        await store.create_subscriber(_subscriber())
        assert (await store.claim_proactive_send("100", TODAY)).acquired is True
        assert (await store.claim_nightly_digest("100", TODAY)).acquired is True
        assert (await store.claim_nightly_digest("100", TODAY)).acquired is False

    async def test_claim_unknown_phone(self, store):
        claim = await store.claim_nightly_digest("missing", TODAY)
        assert claim.acquired is False

    async def test_concurrent_claims_single_winner(self, store):
        await store.create_subscriber(_subscriber())
        claims = await asyncio.gather(
            *[store.claim_proactive_send("100", TODAY) for _ in range(5)]
        )
        assert sum(c.acquired for c in claims) == 1


class TestHistory:
    async def test_append_digest_prunes_old_entries(self, store):
        now = datetime(2025, 3, 20, tzinfo=pytz.utc)
        old = Digest(topic="old", summary="", timestamp=now - timedelta(days=15))
        await store.create_subscriber(_subscriber(digests=[old]))
        digests = await store.append_digest(
            "100",
            Digest(topic="new", summary="s", timestamp=now),
            keep_after=now - timedelta(days=10),
        )
        assert [d.topic for d in digests] == ["new"]
        loaded = await store.get_subscriber("100")
        assert loaded.last_digest_topic == "new"

    async def test_streak_progression(self, store):
        await store.create_subscriber(_subscriber())
        assert (await store.update_streak("100", TODAY)).current_streak == 1
        assert (await store.update_streak("100", TODAY)).current_streak == 1
        assert (await store.update_streak("100", TODAY + timedelta(days=1))).current_streak == 2
        streak = await store.update_streak("100", TODAY + timedelta(days=5))
        assert streak.current_streak == 1
        assert streak.longest_streak == 2
