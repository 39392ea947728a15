"""
Tests for webhook dedup markers and conversation digests.
"""

from datetime import timedelta

import pytest

from language_buddy.core.exceptions import ConversationAgentError


class TestDedupStore:
    async def test_first_delivery_only(self, container, clock):
        dedup = container.dedup_store
        assert await dedup.record_processed("wamid.1", clock()) is True
        assert await dedup.record_processed("wamid.1", clock()) is False
        assert await dedup.record_processed("wamid.2", clock()) is True

    async def test_marker_expires(self, container, clock):
        dedup = container.dedup_store
        await dedup.record_processed("wamid.1", clock())
        assert await dedup.record_processed("wamid.1", clock() + timedelta(minutes=29)) is False
        assert await dedup.record_processed("wamid.1", clock() + timedelta(minutes=31)) is True


class TestDigestService:
    async def test_nothing_to_digest(self, container, make_subscriber, fake_agent):
        subscriber = await make_subscriber()
        assert await container.digests.create_digest(subscriber) is None
        assert fake_agent.calls == []

    async def test_run_nightly_stores_and_clears(self, container, make_subscriber):
        subscriber = await make_subscriber()
        await container.conversations.process_user_message(subscriber, "Ich war in Madrid")

        digest = await container.digests.run_nightly(subscriber)

        assert digest.topic == "travel"
        assert subscriber.metadata.digests[-1].topic == "travel"
        assert await container.conversations.get_checkpoint(subscriber.phone) is None

    async def test_digest_prompt_sees_transcript(self, container, make_subscriber, fake_agent):
        subscriber = await make_subscriber()
        await container.conversations.process_user_message(subscriber, "Ich war in Madrid")

        await container.digests.create_digest(subscriber)

        history, _ = fake_agent.calls[-1]
        assert "user: Ich war in Madrid" in history[0]["content"]

    async def test_unusable_answer_raises(self, container, make_subscriber, fake_agent):
        subscriber = await make_subscriber()
        await container.conversations.process_user_message(subscriber, "Hallo")
        fake_agent.raw = "no json here"

        with pytest.raises(ConversationAgentError):
            await container.digests.create_digest(subscriber)

    async def test_old_digests_are_pruned(self, container, make_subscriber, clock):
        subscriber = await make_subscriber()
        await container.conversations.process_user_message(subscriber, "Hallo")
        await container.digests.create_digest(subscriber)

        clock.advance(days=11)
        await container.conversations.process_user_message(subscriber, "Wieder da")
        await container.digests.create_digest(subscriber)

        stored = await container.subscribers.get_subscriber(subscriber.phone)
        assert len(stored.metadata.digests) == 1
