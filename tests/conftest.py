"""
Pytest configuration and fixtures.
"""

import asyncio
import json
import re
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest
import pytz

from language_buddy.agents.buddy import ConversationAgent
from language_buddy.config import Settings
from language_buddy.container import ServiceContainer
from language_buddy.core.models import (
    Subscriber,
    SubscriberMetadata,
    SubscriberProfile,
    LanguageSkill,
)
from language_buddy.services.external import BillingClient, WhatsAppClient

PAYMENT_LINK = "https://pay.example.com/checkout"


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeAgent(ConversationAgent):
    """Rule-based stand-in for the LLM.

    Onboarding prompts are answered with JSON extracted by simple
    patterns, digest prompts with a fixed topic, and everything else
    with ``self.reply``.
    """

    def __init__(self):
        self.calls = []
        self.reply = "Hallo! Wie geht's dir heute?"
        self.raw = None
        self.fail = False
        self.delay = 0.0

    async def invoke(self, history, system_prompt):
        self.calls.append((list(history), system_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("agent unavailable")
        if self.raw is not None:
            return self.raw

        text = history[-1]["content"]
        step = re.search(r"CURRENT STEP: (\w+)", system_prompt)
        if step:
            return json.dumps(self._onboarding(step.group(1), text))
        if "analyse a language practice conversation" in system_prompt:
            return json.dumps({"topic": "travel", "summary": "Talked about a trip to Spain."})
        return self.reply

    @staticmethod
    def _onboarding(step: str, text: str) -> dict:
        data = {"reply": f"[{step}]"}
        lowered = text.lower()
        if step == "gdpr_consent":
            data["consent"] = "accept" in lowered or lowered.strip() in ("yes", "ok")
        elif step == "profile_gathering":
            name = re.search(r"name is (\w+)", text, re.IGNORECASE)
            if name:
                data["name"] = name.group(1)
            speak = re.search(r"i speak ([\w ,]+)", text, re.IGNORECASE)
            if speak:
                data["native_languages"] = [
                    part.strip() for part in re.split(r",| and ", speak.group(1)) if part.strip()
                ]
        elif step == "target_language":
            learn = re.search(r"learning (\w+)", text, re.IGNORECASE)
            if learn:
                data["target_language"] = learn.group(1)
        elif step == "assessment_conversation":
            data["assessment_complete"] = "done" in lowered
            data["level"] = "B1"
        return data


@pytest.fixture
def clock():
    """Clock fixed at Monday 2025-03-10 14:00 UTC."""
    return FakeClock(datetime(2025, 3, 10, 14, 0, tzinfo=pytz.utc))


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway database."""
    return Settings(
        state_db_path=str(tmp_path / "buddy.db"),
        scheduler_enabled=False,
        daily_conversation_limit=3,
        trial_days=7,
        fallback_timezone="UTC",
        proactive_hour=8,
        nightly_digest_hour=3,
        onboarding_min_assessment_messages=2,
        agent_timeout_seconds=1.0,
        whatsapp_app_secret=None,
        whatsapp_verify_token="verify-me",
        openai_api_key=None,
        stripe_secret_key=None,
    )


@pytest.fixture
def fake_agent():
    return FakeAgent()


@pytest.fixture
def transport():
    """Mock WhatsApp transport."""
    client = Mock(spec=WhatsAppClient)
    client.send_message = AsyncMock(return_value=True)
    client.mark_as_read = AsyncMock(return_value=None)
    return client


@pytest.fixture
def billing():
    """Mock billing client for an unpaid user."""
    client = Mock(spec=BillingClient)
    client.check_subscription = AsyncMock(return_value=False)
    client.get_payment_link = AsyncMock(return_value=PAYMENT_LINK)
    return client


@pytest.fixture
def container(settings, fake_agent, transport, billing, clock):
    return ServiceContainer(
        settings, agent=fake_agent, transport=transport, billing=billing, clock=clock
    )


@pytest.fixture
def make_subscriber(container, clock):
    """Factory that stores a subscriber with the given overrides."""

    async def _make(
        phone: str = "4915112345678",
        timezone: str = "UTC",
        signup_days_ago: int = 0,
        **metadata,
    ) -> Subscriber:
        subscriber = Subscriber(
            phone=phone,
            profile=SubscriberProfile(
                name="Ben",
                speaking_languages=[LanguageSkill(name="english")],
                learning_languages=[LanguageSkill(name="german", level="A2")],
                timezone=timezone,
            ),
            metadata=SubscriberMetadata(
                signup_timestamp=clock() - timedelta(days=signup_days_ago),
                **metadata,
            ),
        )
        await container.subscriber_store.create_subscriber(subscriber)
        return await container.subscriber_store.get_subscriber(phone)

    return _make
