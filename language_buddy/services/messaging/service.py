"""
Routing of inbound messages and initiation requests.
"""

from datetime import datetime
from typing import Callable

from ...agents.buddy.prompts import SYSTEM_INITIATION_MESSAGE, daily_system_prompt
from ...core.enums import CommandResult
from ...core.models import Subscriber, WebhookMessage
from ...utils.logging import get_logger
from ...utils.phone import sanitize_phone_number
from ...utils.timezone import utc_now
from ..commands import CommandHandler
from ..conversation import ConversationService
from ..external import BillingClient, WhatsAppClient
from ..onboarding import OnboardingService
from ..storage import DedupStore
from ..subscriber import SubscriberService

logger = get_logger("buddy.messaging")

UNSUPPORTED_MESSAGE = (
    "I currently only support text messages. Please send a text message to continue."
)
PROCESSING_ERROR_MESSAGE = (
    "An unexpected error occurred while processing your message. Please try again later."
)
DAILY_LIMIT_MESSAGE = (
    "⏳ You have reached your daily limit. Subscribe for unlimited conversations: {link}"
)
TRIAL_ENDED_MESSAGE = (
    "Your trial period has ended. To continue unlimited conversations, "
    "please subscribe here: {link}"
)


class MessagingService:
    """Decides what happens to each inbound message or /initiate call."""

    def __init__(
        self,
        subscribers: SubscriberService,
        onboarding: OnboardingService,
        conversations: ConversationService,
        commands: CommandHandler,
        dedup: DedupStore,
        transport: WhatsAppClient,
        billing: BillingClient,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.subscribers = subscribers
        self.onboarding = onboarding
        self.conversations = conversations
        self.commands = commands
        self.dedup = dedup
        self.transport = transport
        self.billing = billing
        self.clock = clock

    async def handle_webhook_message(self, message: WebhookMessage) -> str:
        """Process one inbound message; never raises. Returns a short status."""
        phone = sanitize_phone_number(message.from_)
        if message.id and not await self.dedup.record_processed(message.id, self.clock()):
            logger.info(f"messaging: duplicate delivery {message.id} ignored")
            return "duplicate"

        if not message.is_text:
            logger.info(f"messaging: unsupported {message.type} message from {phone}")
            await self.transport.send_message(phone, UNSUPPORTED_MESSAGE)
            return "unsupported"

        text = message.text.body.strip()
        if not text:
            return "ignored"

        try:
            await self.transport.mark_as_read(message.id)
            return await self._process_text(phone, text)
        except Exception as e:
            logger.error(f"messaging: processing failed for {phone}: {e}")
            await self.transport.send_message(phone, PROCESSING_ERROR_MESSAGE)
            return "error"

    async def _process_text(self, phone: str, text: str) -> str:
        subscriber = await self.subscribers.get_subscriber(phone)
        if subscriber is None:
            result = await self.onboarding.advance(phone, text)
            await self.transport.send_message(phone, result.reply)
            return "onboarding"

        if await self.commands.handle(subscriber, text) is CommandResult.HANDLED:
            return "command"

        # Only the delivery that claims the session spends a daily slot
        started = await self.conversations.claim_session(phone)
        if started:
            try:
                admitted = await self._admit(subscriber)
            except Exception:
                await self.conversations.release_session(phone)
                raise
            if not admitted:
                await self.conversations.release_session(phone)
                return "throttled"

        try:
            reply = await self.conversations.process_user_message(subscriber, text)
        except Exception:
            if started:
                await self.subscribers.release_conversation(subscriber)
                await self.conversations.release_session(phone)
            raise

        await self.transport.send_message(phone, reply)
        if started:
            await self._after_conversation_start(subscriber)
        return "ok"

    async def _admit(self, subscriber: Subscriber) -> bool:
        """Claim a conversation slot, upgrading paid users; tells refused users how to pay."""
        if await self.subscribers.start_conversation(subscriber):
            return True

        if await self.billing.check_subscription(subscriber.phone):
            await self.subscribers.mark_premium(subscriber)
            return await self.subscribers.start_conversation(subscriber)

        link = await self.billing.get_payment_link(subscriber.phone)
        await self.transport.send_message(
            subscriber.phone, DAILY_LIMIT_MESSAGE.format(link=link)
        )
        return False

    async def _after_conversation_start(self, subscriber: Subscriber) -> None:
        await self.subscribers.update_streak(subscriber)
        if not self.subscribers.should_prompt_for_subscription(subscriber):
            return
        if await self.billing.check_subscription(subscriber.phone):
            await self.subscribers.mark_premium(subscriber)
            return
        link = await self.billing.get_payment_link(subscriber.phone)
        await self.transport.send_message(
            subscriber.phone, TRIAL_ENDED_MESSAGE.format(link=link)
        )

    async def initiate(self, phone: str) -> str:
        """Start a system-initiated conversation with ``phone``.

        Returns "initiated", "throttled" or "failed".
        """
        subscriber, created = await self.subscribers.get_or_create_subscriber(phone)
        if created:
            await self.onboarding.discard(phone)

        if not await self._admit(subscriber):
            logger.info(f"messaging: /initiate refused for {phone}, daily limit reached")
            return "throttled"

        previous = await self.conversations.checkpoints.load(phone)
        await self.conversations.clear_conversation(phone)
        context = self.conversations.build_context(
            subscriber, previous, self.clock(), continuing=False
        )
        reply = await self.conversations.initiate_conversation(
            subscriber, SYSTEM_INITIATION_MESSAGE, daily_system_prompt(subscriber, context)
        )
        if self.conversations.is_initiation_failure(reply):
            await self.subscribers.release_conversation(subscriber)
            await self.transport.send_message(phone, reply)
            return "failed"

        await self.transport.send_message(phone, reply)
        await self._after_conversation_start(subscriber)
        logger.info(f"messaging: conversation initiated for {phone}")
        return "initiated"
