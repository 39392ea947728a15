"""
Proactive scheduler: nightly digests and one proactive message per local day.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ...agents.buddy.prompts import SYSTEM_INITIATION_MESSAGE, daily_system_prompt
from ...config import Settings
from ...core.models import Subscriber
from ...utils.logging import get_logger
from ...utils.timezone import local_now, utc_now
from ..conversation import ConversationService
from ..digest import DigestService
from ..external import WhatsAppClient
from ..subscriber import SubscriberService

logger = get_logger("buddy.scheduler")

SWEEP_JOB_ID = "subscriber-sweep"


class ProactiveScheduler:
    """Sweeps all subscribers on a timer and acts on their local time.

    The per-day markers are claimed with compare-and-set before any
    message goes out, so repeated or overlapping sweeps cannot send twice
    on the same local date. A failed send releases the claim so the next
    sweep inside the window retries. A crash between claim and send skips
    that subscriber for the day rather than risking a duplicate.
    """

    def __init__(
        self,
        subscribers: SubscriberService,
        conversations: ConversationService,
        digests: DigestService,
        transport: WhatsAppClient,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.subscribers = subscribers
        self.conversations = conversations
        self.digests = digests
        self.transport = transport
        self.settings = settings
        self.clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._in_flight: Set[str] = set()
        self._semaphore = asyncio.Semaphore(max(1, settings.scheduler_concurrency))

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Register the sweep job; must be called from a running event loop."""
        if self.running:
            logger.info("scheduler: start skipped, already running")
            return
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_job(
            self.sweep,
            IntervalTrigger(minutes=self.settings.scheduler_interval_minutes),
            id=SWEEP_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            f"scheduler: started, sweeping every {self.settings.scheduler_interval_minutes} min"
        )

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("scheduler: stopped")
        self._scheduler = None

    async def sweep(self, now: Optional[datetime] = None) -> None:
        """Check every subscriber once."""
        now = now or self.clock()
        subscribers = await self.subscribers.list_subscribers()
        await asyncio.gather(*(self._guarded(sub, now) for sub in subscribers))

    async def _guarded(self, subscriber: Subscriber, now: datetime) -> None:
        phone = subscriber.phone
        if phone in self._in_flight:
            return
        self._in_flight.add(phone)
        try:
            async with self._semaphore:
                await self.process_subscriber(subscriber, now)
        except Exception as e:
            logger.error(f"scheduler: processing {phone} failed: {e}")
        finally:
            self._in_flight.discard(phone)

    async def process_subscriber(self, subscriber: Subscriber, now: datetime) -> None:
        local = local_now(now, self.subscribers.timezone_for(subscriber))
        if local.hour == self.settings.nightly_digest_hour:
            await self.run_nightly_digest(subscriber, now)
        if local.hour == self.settings.proactive_hour:
            await self.send_proactive_message(subscriber, now)

    async def run_nightly_digest(self, subscriber: Subscriber, now: datetime) -> bool:
        """Digest and clear the conversation once per local night."""
        phone = subscriber.phone
        today = self.subscribers.today_for(subscriber, now)
        claim = await self.subscribers.store.claim_nightly_digest(phone, today)
        if not claim.acquired:
            return False

        try:
            await self.digests.run_nightly(subscriber)
        except Exception as e:
            logger.error(f"scheduler: nightly digest failed for {phone}: {e}")
            await self.subscribers.store.release_nightly_digest(phone, today, claim.previous)
            return False

        logger.info(f"scheduler: nightly digest done for {phone} on {today}")
        return True

    async def send_proactive_message(self, subscriber: Subscriber, now: datetime) -> bool:
        """Send today's proactive opener if the subscriber is eligible."""
        phone = subscriber.phone
        today = self.subscribers.today_for(subscriber, now)

        if subscriber.metadata.last_proactive_sent_date == today:
            return False
        if await self.conversations.currently_in_active_conversation(phone):
            logger.info(f"scheduler: {phone} is mid-conversation, skipping proactive")
            return False
        if not await self.subscribers.can_start_conversation_today(phone, now):
            logger.info(f"scheduler: {phone} has no conversations left today")
            return False

        claim = await self.subscribers.store.claim_proactive_send(phone, today)
        if not claim.acquired:
            return False
        if not await self.subscribers.start_conversation(subscriber, now):
            await self.subscribers.store.release_proactive_send(phone, today, claim.previous)
            return False

        sent = False
        initiated = False
        try:
            previous = await self.conversations.checkpoints.load(phone)
            context = self.conversations.build_context(
                subscriber, previous, now, continuing=False
            )
            reply = await self.conversations.initiate_conversation(
                subscriber,
                SYSTEM_INITIATION_MESSAGE,
                daily_system_prompt(subscriber, context),
            )
            initiated = not self.conversations.is_initiation_failure(reply)
            if initiated:
                sent = await self.transport.send_message(phone, reply)
        finally:
            if not sent:
                if initiated:
                    await self.conversations.clear_conversation(phone)
                await self.subscribers.release_conversation(subscriber, now)
                await self.subscribers.store.release_proactive_send(
                    phone, today, claim.previous
                )

        if not sent:
            logger.warning(f"scheduler: proactive message to {phone} not sent, will retry")
            return False

        await self.subscribers.update_streak(subscriber, now)
        logger.info(f"scheduler: proactive message sent to {phone} for {today}")
        return True
