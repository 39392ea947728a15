"""
Subscriber service: profile access and the trial/throttle eligibility gate.
"""

from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple

import pytz

from ...config import Settings
from ...core.enums import SubscriberTier
from ...core.models import (
    Digest,
    StreakData,
    Subscriber,
    SubscriberMetadata,
    SubscriberProfile,
)
from ...utils.logging import get_logger
from ...utils.timezone import civil_date, resolve_timezone, utc_now
from ..storage import SubscriberStore

logger = get_logger("buddy.gate")


class SubscriberService:
    """Owns subscriber records and decides who may start a conversation.

    All day arithmetic happens on civil dates in the subscriber's own
    timezone. The timezone is resolved once per evaluation so a missing
    zone cannot mix fallback and explicit offsets within one decision.
    """

    def __init__(
        self,
        store: SubscriberStore,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.settings = settings
        self.clock = clock

    async def get_subscriber(self, phone: str) -> Optional[Subscriber]:
        return await self.store.get_subscriber(phone)

    async def list_subscribers(self) -> List[Subscriber]:
        return await self.store.list_subscribers()

    async def create_subscriber(
        self, phone: str, profile: Optional[SubscriberProfile] = None
    ) -> Tuple[Subscriber, bool]:
        """Create the subscriber unless it exists; returns (subscriber, created)."""
        subscriber = Subscriber(
            phone=phone,
            profile=profile or SubscriberProfile(timezone=self.settings.fallback_timezone),
            metadata=SubscriberMetadata(signup_timestamp=self.clock()),
        )
        created = await self.store.create_subscriber(subscriber)
        if not created:
            existing = await self.store.get_subscriber(phone)
            return existing, False
        return subscriber, True

    async def get_or_create_subscriber(self, phone: str) -> Tuple[Subscriber, bool]:
        subscriber = await self.store.get_subscriber(phone)
        if subscriber is not None:
            return subscriber, False
        return await self.create_subscriber(phone)

    async def mark_premium(self, subscriber: Subscriber) -> None:
        if subscriber.metadata.is_premium:
            return
        await self.store.set_premium(subscriber.phone, True)
        subscriber.metadata.is_premium = True
        logger.info(f"gate: {subscriber.phone} upgraded to premium")

    def timezone_for(self, subscriber: Subscriber) -> pytz.BaseTzInfo:
        return resolve_timezone(subscriber.profile.timezone, self.settings.fallback_timezone)

    def today_for(self, subscriber: Subscriber, now: Optional[datetime] = None) -> date:
        """The subscriber's local civil date."""
        return civil_date(now or self.clock(), self.timezone_for(subscriber))

    def _days_since_signup(
        self, subscriber: Subscriber, now: datetime, tz: pytz.BaseTzInfo
    ) -> int:
        signup = civil_date(subscriber.metadata.signup_timestamp, tz)
        return (civil_date(now, tz) - signup).days

    def days_since_signup(self, subscriber: Subscriber, now: Optional[datetime] = None) -> int:
        """Whole local calendar days since signup; the signup day is day 0."""
        return self._days_since_signup(
            subscriber, now or self.clock(), self.timezone_for(subscriber)
        )

    def _in_trial(self, subscriber: Subscriber, now: datetime, tz: pytz.BaseTzInfo) -> bool:
        return self._days_since_signup(subscriber, now, tz) < self.settings.trial_days

    def tier(self, subscriber: Subscriber, now: Optional[datetime] = None) -> SubscriberTier:
        if subscriber.metadata.is_premium:
            return SubscriberTier.PREMIUM
        tz = self.timezone_for(subscriber)
        if self._in_trial(subscriber, now or self.clock(), tz):
            return SubscriberTier.TRIAL
        return SubscriberTier.FREE

    def should_throttle(self, subscriber: Subscriber, now: Optional[datetime] = None) -> bool:
        """True when the daily limit applies: non-premium and inside the trial."""
        return self.tier(subscriber, now) is SubscriberTier.TRIAL

    def should_prompt_for_subscription(
        self, subscriber: Subscriber, now: Optional[datetime] = None
    ) -> bool:
        """True for non-premium subscribers whose trial has ended."""
        return self.tier(subscriber, now) is SubscriberTier.FREE

    def _has_capacity(self, subscriber: Subscriber, today: date) -> bool:
        meta = subscriber.metadata
        used = meta.conversations_started_today if meta.last_conversation_date == today else 0
        return used < self.settings.daily_conversation_limit

    async def can_start_conversation_today(
        self, phone: str, now: Optional[datetime] = None
    ) -> bool:
        """Whether ``phone`` may start another conversation on its local today."""
        subscriber = await self.store.get_subscriber(phone)
        if subscriber is None:
            return False
        now = now or self.clock()
        tz = self.timezone_for(subscriber)
        if subscriber.metadata.is_premium or not self._in_trial(subscriber, now, tz):
            return True
        return self._has_capacity(subscriber, civil_date(now, tz))

    async def increment_conversation_count(
        self, phone: str, now: Optional[datetime] = None
    ) -> int:
        """Count a conversation start, resetting the counter on a new local day."""
        subscriber = await self.store.get_subscriber(phone)
        if subscriber is None:
            return 0
        today = self.today_for(subscriber, now)
        count = await self.store.increment_conversation_count(phone, today)
        logger.info(f"gate: {phone} started conversation {count} on {today}")
        return count

    async def start_conversation(
        self, subscriber: Subscriber, now: Optional[datetime] = None
    ) -> bool:
        """Claim a conversation slot; False when a trial user hit the daily limit."""
        now = now or self.clock()
        tz = self.timezone_for(subscriber)
        today = civil_date(now, tz)
        if subscriber.metadata.is_premium or not self._in_trial(subscriber, now, tz):
            await self.store.increment_conversation_count(subscriber.phone, today)
            return True

        started = await self.store.try_start_conversation(
            subscriber.phone, today, self.settings.daily_conversation_limit
        )
        if not started:
            logger.info(f"gate: {subscriber.phone} reached the daily limit on {today}")
        return started

    async def release_conversation(
        self, subscriber: Subscriber, now: Optional[datetime] = None
    ) -> None:
        """Return a slot claimed by start_conversation on the same local day."""
        await self.store.release_conversation(subscriber.phone, self.today_for(subscriber, now))

    async def update_streak(
        self, subscriber: Subscriber, now: Optional[datetime] = None
    ) -> Optional[StreakData]:
        return await self.store.update_streak(subscriber.phone, self.today_for(subscriber, now))

    async def add_digest(self, subscriber: Subscriber, digest: Digest) -> List[Digest]:
        """Store ``digest`` and prune digests past the retention window."""
        keep_after = self.clock() - timedelta(days=self.settings.digest_retention_days)
        digests = await self.store.append_digest(subscriber.phone, digest, keep_after)
        subscriber.metadata.digests = digests
        return digests
