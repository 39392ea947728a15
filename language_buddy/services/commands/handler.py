"""
User commands sent as chat messages.
"""

from datetime import datetime, time, timedelta
from typing import Awaitable, Callable, Dict

from ...agents.buddy.prompts import feature_overview
from ...config import Settings
from ...core.enums import CommandResult
from ...core.exceptions import ConversationAgentError
from ...core.models import Subscriber
from ...utils.logging import get_logger
from ...utils.timezone import local_now, utc_now
from ..conversation import ConversationService
from ..digest import DigestService
from ..external import WhatsAppClient
from ..subscriber import SubscriberService

logger = get_logger("buddy.commands")


class CommandHandler:
    """Handles ``ping`` and ``!``-prefixed commands before regular conversation."""

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
        self._commands: Dict[str, Callable[[Subscriber], Awaitable[str]]] = {
            "!help": self._help,
            "!clear": self._clear,
            "!digest": self._digest,
            "!me": self._profile,
            "!profile": self._profile,
            "!languages": self._languages,
            "!schedule": self._schedule,
        }

    async def handle(self, subscriber: Subscriber, text: str) -> CommandResult:
        """Run the command in ``text`` if there is one and send its reply."""
        command = (text or "").strip().lower()
        if command == "ping":
            await self.transport.send_message(subscriber.phone, "pong")
            return CommandResult.HANDLED
        if not command.startswith("!"):
            return CommandResult.NOTHING

        name = command.split()[0]
        handler = self._commands.get(name)
        if handler is None:
            reply = f"Unknown command {name}. Send !help to see what I understand."
        else:
            logger.info(f"commands: {name} from {subscriber.phone}")
            reply = await handler(subscriber)
        await self.transport.send_message(subscriber.phone, reply)
        return CommandResult.HANDLED

    async def _help(self, subscriber: Subscriber) -> str:
        return feature_overview(subscriber)

    async def _clear(self, subscriber: Subscriber) -> str:
        await self.conversations.clear_conversation(subscriber.phone)
        return "🧹 Conversation cleared. Send me a message to start fresh."

    async def _digest(self, subscriber: Subscriber) -> str:
        try:
            digest = await self.digests.create_digest(subscriber)
        except ConversationAgentError as e:
            logger.error(f"commands: digest failed for {subscriber.phone}: {e}")
            return "I couldn't summarise our conversation right now. Please try again later."
        if digest is None:
            return "There is no conversation to summarise yet."
        return f"📝 Digest saved: {digest.topic}\n{digest.summary}"

    async def _profile(self, subscriber: Subscriber) -> str:
        profile = subscriber.profile
        meta = subscriber.metadata
        tier = self.subscribers.tier(subscriber, self.clock())
        return "\n".join([
            f"👤 {profile.name}",
            f"Timezone: {profile.timezone or self.settings.fallback_timezone}",
            f"Plan: {tier.value}",
            f"Streak: {meta.streak_data.current_streak} days "
            f"(best {meta.streak_data.longest_streak})",
            f"Conversations today: {meta.conversations_started_today}"
            if meta.last_conversation_date == self.subscribers.today_for(subscriber, self.clock())
            else "Conversations today: 0",
        ])

    async def _languages(self, subscriber: Subscriber) -> str:
        profile = subscriber.profile
        speaking = ", ".join(lang.name for lang in profile.speaking_languages) or "none yet"
        learning = ", ".join(
            f"{lang.name} ({lang.level})" if lang.level else lang.name
            for lang in profile.learning_languages
        ) or "none yet"
        return f"🗣️ You speak: {speaking}\n📚 You are learning: {learning}"

    def next_proactive_time(self, subscriber: Subscriber) -> datetime:
        """Local time of the next proactive opener for ``subscriber``."""
        tz = self.subscribers.timezone_for(subscriber)
        now = local_now(self.clock(), tz)
        day = now.date()
        at = time(hour=self.settings.proactive_hour)
        sent_today = subscriber.metadata.last_proactive_sent_date == day
        if sent_today or tz.localize(datetime.combine(day, at)) <= now:
            day += timedelta(days=1)
        return tz.localize(datetime.combine(day, at))

    async def _schedule(self, subscriber: Subscriber) -> str:
        next_send = self.next_proactive_time(subscriber)
        return f"⏰ I'll write to you next on {next_send.strftime('%A at %H:%M')} your time."
