"""
Conversation session controller.
"""

import asyncio
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ...agents.buddy import ConversationAgent
from ...agents.buddy.prompts import generate_system_prompt
from ...config import Settings
from ...core.enums import MessageRole
from ...core.exceptions import ConversationAgentError
from ...core.models import ChatMessage, Checkpoint, ConversationContext, Subscriber
from ...utils.logging import get_logger
from ...utils.timezone import local_now, resolve_timezone, utc_now
from ..storage import CheckpointStore

logger = get_logger("buddy.conversation")

INITIATION_FAILED_MESSAGE = (
    "An error occurred while initiating the conversation. Please try again later."
)
ONE_SHOT_FAILED_MESSAGE = "An error occurred while generating the message."


def _minutes_between(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() // 60))


class ConversationService:
    """Continues or restarts a subscriber's conversation through the agent.

    Failure handling differs by entry point. initiate_conversation and
    one_shot_message return a fixed apology so that something is always
    delivered. process_user_message raises ConversationAgentError so the
    caller can route its own error reply or retry.
    """

    def __init__(
        self,
        agent: ConversationAgent,
        checkpoints: CheckpointStore,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.agent = agent
        self.checkpoints = checkpoints
        self.settings = settings
        self.clock = clock

    @staticmethod
    def is_initiation_failure(reply: Optional[str]) -> bool:
        return not reply or reply == INITIATION_FAILED_MESSAGE

    def build_context(
        self,
        subscriber: Subscriber,
        checkpoint: Optional[Checkpoint],
        now: datetime,
        continuing: bool = True,
    ) -> ConversationContext:
        """Timing context for the prompt; duration only applies when continuing."""
        tz = resolve_timezone(subscriber.profile.timezone, self.settings.fallback_timezone)
        context = ConversationContext(
            local_time=local_now(now, tz),
            last_digest_topic=subscriber.last_digest_topic,
        )
        if checkpoint is not None and checkpoint.messages:
            context.time_since_last_message_minutes = _minutes_between(
                checkpoint.last_message_at, now
            )
            if continuing:
                context.conversation_duration_minutes = _minutes_between(
                    checkpoint.conversation_started_at, now
                )
        return context

    async def invoke_agent(self, history: List[Dict[str, str]], system_prompt: str) -> str:
        """Call the agent with a bounded timeout; every failure becomes ConversationAgentError."""
        timeout = self.settings.agent_timeout_seconds
        try:
            reply = await asyncio.wait_for(
                self.agent.invoke(history, system_prompt), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise ConversationAgentError(f"Agent timed out after {timeout}s") from e
        except ConversationAgentError:
            raise
        except Exception as e:
            raise ConversationAgentError(f"Agent failed: {e}") from e

        if not reply or not reply.strip():
            raise ConversationAgentError("Agent returned an empty reply")
        return reply

    async def initiate_conversation(
        self,
        subscriber: Subscriber,
        human_message: str,
        system_prompt_override: Optional[str] = None,
    ) -> str:
        """Start a fresh conversation and return the opener, or an apology."""
        phone = subscriber.phone
        now = self.clock()
        try:
            previous = await self.checkpoints.load(phone)
            context = self.build_context(subscriber, previous, now, continuing=False)
            system_prompt = system_prompt_override or generate_system_prompt(subscriber, context)

            reply = await self.invoke_agent(
                [{"role": MessageRole.USER.value, "content": human_message}], system_prompt
            )

            await self.checkpoints.save(Checkpoint(
                phone=phone,
                messages=[
                    ChatMessage(role=MessageRole.USER, content=human_message, timestamp=now),
                    ChatMessage(role=MessageRole.ASSISTANT, content=reply, timestamp=self.clock()),
                ],
                conversation_started_at=now,
                last_message_at=self.clock(),
            ))
            logger.info(f"conversation: initiated for {phone}")
            return reply
        except Exception as e:
            logger.error(f"conversation: initiation failed for {phone}: {e}")
            return INITIATION_FAILED_MESSAGE

    async def process_user_message(
        self,
        subscriber: Subscriber,
        human_message: str,
        system_prompt_override: Optional[str] = None,
    ) -> str:
        """Continue the conversation with ``human_message``.

        Raises ConversationAgentError when the agent fails or times out.
        """
        if not human_message or not human_message.strip():
            raise ValueError("human_message must not be empty")

        phone = subscriber.phone
        now = self.clock()
        checkpoint = await self.checkpoints.get_active(phone, now)
        context = self.build_context(subscriber, checkpoint, now)

        system_prompt = system_prompt_override or generate_system_prompt(subscriber, context)
        history = (checkpoint.history() if checkpoint else []) + [
            {"role": MessageRole.USER.value, "content": human_message}
        ]

        try:
            reply = await self.invoke_agent(history, system_prompt)
        except ConversationAgentError as e:
            logger.error(f"conversation: turn failed for {phone}: {e}")
            raise

        replied_at = self.clock()
        await self.checkpoints.append_messages(phone, [
            ChatMessage(role=MessageRole.USER, content=human_message, timestamp=now),
            ChatMessage(role=MessageRole.ASSISTANT, content=reply, timestamp=replied_at),
        ], replied_at)
        return reply

    async def one_shot_message(self, system_prompt: str, text: str) -> str:
        """Single agent call without history; returns a fixed message on failure."""
        try:
            return await self.invoke_agent(
                [{"role": MessageRole.USER.value, "content": text}], system_prompt
            )
        except ConversationAgentError as e:
            logger.error(f"conversation: one-shot failed: {e}")
            return ONE_SHOT_FAILED_MESSAGE

    async def currently_in_active_conversation(self, phone: str) -> bool:
        return await self.checkpoints.get_active(phone, self.clock()) is not None

    async def claim_session(self, phone: str) -> bool:
        """True if this caller starts a new conversation, False if one is live or starting."""
        return await self.checkpoints.claim_session(phone, self.clock())

    async def release_session(self, phone: str) -> None:
        await self.checkpoints.release_session(phone)

    async def clear_conversation(self, phone: str) -> None:
        try:
            await self.checkpoints.delete(phone)
            logger.info(f"conversation: cleared for {phone}")
        except Exception as e:
            logger.error(f"conversation: clear failed for {phone}: {e}")

    async def get_checkpoint(self, phone: str) -> Optional[Checkpoint]:
        return await self.checkpoints.get_active(phone, self.clock())

    async def get_conversation_duration(self, phone: str) -> Optional[int]:
        """Minutes since the active conversation started."""
        checkpoint = await self.get_checkpoint(phone)
        if checkpoint is None:
            return None
        return _minutes_between(checkpoint.conversation_started_at, self.clock())

    async def get_time_since_last_message(self, phone: str) -> Optional[int]:
        """Minutes since the last message of the active conversation."""
        checkpoint = await self.get_checkpoint(phone)
        if checkpoint is None:
            return None
        return _minutes_between(checkpoint.last_message_at, self.clock())

    async def get_history(self, phone: str) -> List[Dict[str, str]]:
        """Role-tagged history of the active conversation, empty if none."""
        checkpoint = await self.get_checkpoint(phone)
        return checkpoint.history() if checkpoint else []

    async def append_exchange(self, phone: str, human_message: str, reply: str) -> None:
        """Record one user/assistant exchange without calling the agent."""
        now = self.clock()
        await self.checkpoints.append_messages(phone, [
            ChatMessage(role=MessageRole.USER, content=human_message, timestamp=now),
            ChatMessage(role=MessageRole.ASSISTANT, content=reply, timestamp=now),
        ], now)
