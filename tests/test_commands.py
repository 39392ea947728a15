"""
Tests for chat commands.
"""

from datetime import date, datetime, timedelta

import pytz

from language_buddy.core.enums import CommandResult


def _last_sent(transport):
    return transport.send_message.await_args.args[1]


async def test_plain_text_is_not_a_command(container, make_subscriber, transport):
    subscriber = await make_subscriber()
    assert await container.commands.handle(subscriber, "Hallo!") is CommandResult.NOTHING
    transport.send_message.assert_not_awaited()


async def test_help(container, make_subscriber, transport):
    subscriber = await make_subscriber()
    assert await container.commands.handle(subscriber, "!help") is CommandResult.HANDLED
    assert "!clear" in _last_sent(transport)
    assert "Ben" in _last_sent(transport)


async def test_clear(container, make_subscriber, transport):
    subscriber = await make_subscriber()
    await container.conversations.process_user_message(subscriber, "Hallo")

    await container.commands.handle(subscriber, "!CLEAR")

    assert await container.conversations.get_checkpoint(subscriber.phone) is None
    assert "cleared" in _last_sent(transport)


async def test_digest(container, make_subscriber, transport):
    subscriber = await make_subscriber()
    await container.conversations.process_user_message(subscriber, "Ich war in Madrid")

    await container.commands.handle(subscriber, "!digest")

    assert "Digest saved: travel" in _last_sent(transport)
    stored = await container.subscribers.get_subscriber(subscriber.phone)
    assert stored.last_digest_topic == "travel"


async def test_digest_without_conversation(container, make_subscriber, transport):
    subscriber = await make_subscriber()
    await container.commands.handle(subscriber, "!digest")
    assert "no conversation" in _last_sent(transport)


async def test_digest_agent_failure(container, make_subscriber, transport, fake_agent):
    subscriber = await make_subscriber()
    await container.conversations.process_user_message(subscriber, "Hallo")
    fake_agent.fail = True

    await container.commands.handle(subscriber, "!digest")

    assert "couldn't summarise" in _last_sent(transport)


async def test_languages(container, make_subscriber, transport):
    subscriber = await make_subscriber()
    await container.commands.handle(subscriber, "!languages")
    assert _last_sent(transport) == "🗣️ You speak: english\n📚 You are learning: german (A2)"


async def test_profile(container, make_subscriber, transport):
    subscriber = await make_subscriber(timezone="Europe/Berlin")
    await container.commands.handle(subscriber, "!me")
    reply = _last_sent(transport)
    assert "Ben" in reply
    assert "Timezone: Europe/Berlin" in reply
    assert "Plan: trial" in reply


async def test_schedule_points_at_tomorrow_morning(container, make_subscriber, transport):
    subscriber = await make_subscriber()
    await container.commands.handle(subscriber, "!schedule")
    assert "Tuesday at 08:00" in _last_sent(transport)


async def test_schedule_keeps_local_hour_across_dst_change(container, make_subscriber, clock):
    clock.now = datetime(2025, 3, 29, 12, 0, tzinfo=pytz.utc)
    subscriber = await make_subscriber(timezone="Europe/Berlin")

    next_send = container.commands.next_proactive_time(subscriber)

    assert next_send.date() == date(2025, 3, 30)
    assert next_send.hour == 8
    assert next_send.utcoffset() == timedelta(hours=2)
    assert next_send.astimezone(pytz.utc).hour == 6


async def test_schedule_skips_day_already_sent(container, make_subscriber, clock):
    clock.now = datetime(2025, 3, 10, 6, 0, tzinfo=pytz.utc)
    subscriber = await make_subscriber(last_proactive_sent_date=date(2025, 3, 10))

    next_send = container.commands.next_proactive_time(subscriber)

    assert next_send == pytz.utc.localize(datetime(2025, 3, 11, 8, 0))


async def test_unknown_command(container, make_subscriber, transport):
    subscriber = await make_subscriber()
    assert await container.commands.handle(subscriber, "!dance now") is CommandResult.HANDLED
    assert _last_sent(transport).startswith("Unknown command !dance.")
