"""
Tests for the conversation session controller.
"""

from datetime import timedelta

import pytest

from language_buddy.core.exceptions import ConversationAgentError
from language_buddy.core.models import Digest
from language_buddy.services.conversation import ConversationService
from language_buddy.services.conversation.service import (
    INITIATION_FAILED_MESSAGE,
    ONE_SHOT_FAILED_MESSAGE,
)


async def test_initiate_saves_fresh_checkpoint(container, make_subscriber, fake_agent):
    subscriber = await make_subscriber()
    reply = await container.conversations.initiate_conversation(subscriber, "Hi")

    assert reply == fake_agent.reply
    checkpoint = await container.conversations.get_checkpoint(subscriber.phone)
    assert [m.content for m in checkpoint.messages] == ["Hi", fake_agent.reply]


async def test_initiate_returns_apology_on_agent_error(container, make_subscriber, fake_agent):
    subscriber = await make_subscriber()
    fake_agent.fail = True

    reply = await container.conversations.initiate_conversation(subscriber, "Hi")

    assert reply == INITIATION_FAILED_MESSAGE
    assert container.conversations.is_initiation_failure(reply)
    assert await container.conversations.get_checkpoint(subscriber.phone) is None


async def test_initiate_returns_apology_on_timeout(container, make_subscriber, fake_agent):
    subscriber = await make_subscriber()
    fake_agent.delay = 2.0

    reply = await container.conversations.initiate_conversation(subscriber, "Hi")
    assert reply == INITIATION_FAILED_MESSAGE


async def test_process_user_message_raises_on_agent_error(
    container, make_subscriber, fake_agent
):
    subscriber = await make_subscriber()
    fake_agent.fail = True

    with pytest.raises(ConversationAgentError):
        await container.conversations.process_user_message(subscriber, "Hallo")
    assert await container.conversations.get_checkpoint(subscriber.phone) is None


async def test_process_user_message_rejects_empty_text(container, make_subscriber):
    subscriber = await make_subscriber()
    with pytest.raises(ValueError):
        await container.conversations.process_user_message(subscriber, "   ")


async def test_empty_agent_reply_is_an_error(container, make_subscriber, fake_agent):
    subscriber = await make_subscriber()
    fake_agent.raw = "  "
    with pytest.raises(ConversationAgentError):
        await container.conversations.process_user_message(subscriber, "Hallo")


async def test_history_accumulates(container, make_subscriber, fake_agent, clock):
    subscriber = await make_subscriber()
    conversations = container.conversations

    await conversations.process_user_message(subscriber, "Hallo")
    clock.advance(minutes=2)
    await conversations.process_user_message(subscriber, "Wie geht's?")

    history, _ = fake_agent.calls[-1]
    assert [m["content"] for m in history] == ["Hallo", fake_agent.reply, "Wie geht's?"]
    assert await conversations.get_conversation_duration(subscriber.phone) == 2


async def test_prompt_reflects_time_gap(container, make_subscriber, fake_agent, clock):
    subscriber = await make_subscriber()
    conversations = container.conversations

    await conversations.process_user_message(subscriber, "Hallo")
    clock.advance(minutes=90)
    assert await conversations.get_time_since_last_message(subscriber.phone) == 90

    await conversations.process_user_message(subscriber, "Ich bin zurück")
    _, prompt = fake_agent.calls[-1]
    assert "Time since last message: 90 minutes." in prompt
    assert "Conversation started 90 minutes ago." in prompt
    assert "Reference the time gap naturally" in prompt


async def test_checkpoint_expires(container, make_subscriber, clock):
    subscriber = await make_subscriber()
    conversations = container.conversations

    await conversations.process_user_message(subscriber, "Hallo")
    assert await conversations.currently_in_active_conversation(subscriber.phone) is True

    clock.advance(hours=71)
    assert await conversations.currently_in_active_conversation(subscriber.phone) is True
    clock.advance(hours=1)
    assert await conversations.currently_in_active_conversation(subscriber.phone) is False


async def test_new_conversation_after_expiry_starts_fresh(
    container, make_subscriber, fake_agent, clock
):
    subscriber = await make_subscriber()
    await container.conversations.process_user_message(subscriber, "Hallo")
    clock.advance(hours=73)

    await container.conversations.process_user_message(subscriber, "Neu")
    history, _ = fake_agent.calls[-1]
    assert history == [{"role": "user", "content": "Neu"}]


async def test_clear_conversation(container, make_subscriber):
    subscriber = await make_subscriber()
    await container.conversations.process_user_message(subscriber, "Hallo")
    await container.conversations.clear_conversation(subscriber.phone)
    assert await container.conversations.get_checkpoint(subscriber.phone) is None
    assert await container.conversations.get_history(subscriber.phone) == []


async def test_initiate_mentions_previous_topic_after_a_day(
    container, make_subscriber, fake_agent, clock
):
    subscriber = await make_subscriber()
    await container.conversations.process_user_message(subscriber, "Hallo")
    await container.subscribers.add_digest(
        subscriber,
        Digest(topic="cooking", summary="", timestamp=clock()),
    )
    clock.advance(hours=25)

    await container.conversations.initiate_conversation(subscriber, "Hi")
    _, prompt = fake_agent.calls[-1]
    assert 'Previous topic was: "cooking".' in prompt
    assert "Conversation started" not in prompt


async def test_one_shot_message_falls_back(container, fake_agent):
    fake_agent.fail = True
    assert await container.conversations.one_shot_message("prompt", "text") == ONE_SHOT_FAILED_MESSAGE


def test_is_initiation_failure():
    assert ConversationService.is_initiation_failure(None) is True
    assert ConversationService.is_initiation_failure("Hallo") is False


async def test_duration_without_conversation(container):
    assert await container.conversations.get_conversation_duration("none") is None
    assert await container.conversations.get_time_since_last_message("none") is None


def test_expiry_window(container, clock):
    store = container.checkpoint_store
    assert store.ttl == timedelta(hours=72)


async def test_only_one_caller_claims_a_session(container, make_subscriber):
    subscriber = await make_subscriber()
    conversations = container.conversations

    assert await conversations.claim_session(subscriber.phone) is True
    assert await conversations.claim_session(subscriber.phone) is False

    await conversations.release_session(subscriber.phone)
    assert await conversations.claim_session(subscriber.phone) is True


async def test_claim_refused_while_conversation_is_live(container, make_subscriber, clock):
    subscriber = await make_subscriber()
    conversations = container.conversations
    await conversations.process_user_message(subscriber, "Hallo")

    assert await conversations.claim_session(subscriber.phone) is False
    await conversations.release_session(subscriber.phone)
    assert len((await conversations.get_checkpoint(subscriber.phone)).messages) == 2

    clock.advance(hours=73)
    assert await conversations.claim_session(subscriber.phone) is True


async def test_abandoned_claim_stops_blocking(container, make_subscriber, clock):
    subscriber = await make_subscriber()
    assert await container.conversations.claim_session(subscriber.phone) is True
    clock.advance(minutes=6)
    assert await container.conversations.claim_session(subscriber.phone) is True


async def test_exchanges_append_to_claimed_session(container, make_subscriber, clock):
    subscriber = await make_subscriber()
    started = clock()
    await container.conversations.claim_session(subscriber.phone)
    clock.advance(minutes=1)

    await container.conversations.process_user_message(subscriber, "Hallo")
    await container.conversations.append_exchange(subscriber.phone, "Tschüss", "Bis bald!")

    checkpoint = await container.conversations.get_checkpoint(subscriber.phone)
    assert [m.content for m in checkpoint.messages][::2] == ["Hallo", "Tschüss"]
    assert checkpoint.conversation_started_at == started
    assert checkpoint.last_message_at == clock()
