"""
Conversation digests.
"""

import re
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from ...agents.buddy.prompts import digest_system_prompt
from ...core.exceptions import ConversationAgentError
from ...core.models import Digest, Subscriber
from ...utils.logging import get_logger
from ...utils.timezone import utc_now
from ..conversation import ConversationService
from ..subscriber import SubscriberService

logger = get_logger("buddy.digest")

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class DigestAnalysis(BaseModel):
    """What the agent returns when summarising a conversation."""

    model_config = ConfigDict(extra="ignore")

    topic: str
    summary: str = ""


class DigestService:
    """Summarises finished conversations into stored digests."""

    def __init__(
        self,
        conversations: ConversationService,
        subscribers: SubscriberService,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.conversations = conversations
        self.subscribers = subscribers
        self.clock = clock

    async def create_digest(self, subscriber: Subscriber) -> Optional[Digest]:
        """Summarise the current conversation; None when there is nothing to summarise.

        Raises ConversationAgentError if the agent fails, so callers can retry.
        """
        checkpoint = await self.conversations.checkpoints.load(subscriber.phone)
        if checkpoint is None or not checkpoint.messages:
            logger.info(f"digest: no conversation to digest for {subscriber.phone}")
            return None

        raw = await self.conversations.invoke_agent(
            [{"role": "user", "content": checkpoint.transcript()}],
            digest_system_prompt(),
        )
        match = _JSON_OBJECT_RE.search(raw)
        try:
            if not match:
                raise ValueError("no JSON object in answer")
            analysis = DigestAnalysis.model_validate_json(match.group(0))
        except (ValidationError, ValueError) as e:
            raise ConversationAgentError(f"Unusable digest answer: {e}") from e

        digest = Digest(topic=analysis.topic, summary=analysis.summary, timestamp=self.clock())
        await self.subscribers.add_digest(subscriber, digest)
        logger.info(f"digest: stored '{digest.topic}' for {subscriber.phone}")
        return digest

    async def run_nightly(self, subscriber: Subscriber) -> Optional[Digest]:
        """Digest the day's conversation and start the next day with a clean slate."""
        digest = await self.create_digest(subscriber)
        await self.conversations.clear_conversation(subscriber.phone)
        return digest
