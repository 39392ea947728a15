"""
Composition root wiring stores, collaborators and services together.
"""

from datetime import datetime
from typing import Callable, Optional

from .agents.buddy import ConversationAgent, OpenAIConversationAgent
from .config import Settings
from .services.commands import CommandHandler
from .services.conversation import ConversationService
from .services.digest import DigestService
from .services.external import BillingClient, WhatsAppClient
from .services.messaging import MessagingService
from .services.onboarding import OnboardingService
from .services.scheduler import ProactiveScheduler
from .services.storage import CheckpointStore, DedupStore, OnboardingStore, SubscriberStore
from .services.subscriber import SubscriberService
from .utils.timezone import utc_now


class ServiceContainer:
    """Builds every component once and hands out shared references."""

    def __init__(
        self,
        settings: Settings,
        agent: Optional[ConversationAgent] = None,
        transport: Optional[WhatsAppClient] = None,
        billing: Optional[BillingClient] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self.clock = clock

        db_path = settings.state_db_path
        self.subscriber_store = SubscriberStore(db_path)
        self.onboarding_store = OnboardingStore(db_path, settings.onboarding_ttl_hours)
        self.checkpoint_store = CheckpointStore(db_path, settings.checkpoint_ttl_hours)
        self.dedup_store = DedupStore(db_path, settings.dedup_ttl_minutes)

        self.agent = agent or OpenAIConversationAgent(settings)
        self.transport = transport or WhatsAppClient(settings)
        self.billing = billing or BillingClient(settings)

        self.subscribers = SubscriberService(self.subscriber_store, settings, clock)
        self.conversations = ConversationService(
            self.agent, self.checkpoint_store, settings, clock
        )
        self.onboarding = OnboardingService(
            self.onboarding_store, self.subscribers, self.conversations, settings, clock
        )
        self.digests = DigestService(self.conversations, self.subscribers, clock)
        self.commands = CommandHandler(
            self.subscribers, self.conversations, self.digests, self.transport, settings, clock
        )
        self.scheduler = ProactiveScheduler(
            self.subscribers, self.conversations, self.digests, self.transport, settings, clock
        )
        self.messaging = MessagingService(
            self.subscribers,
            self.onboarding,
            self.conversations,
            self.commands,
            self.dedup_store,
            self.transport,
            self.billing,
            clock,
        )
