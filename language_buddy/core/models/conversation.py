"""
Conversation-related data models.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from ..enums import MessageRole


class ChatMessage(BaseModel):
    """Individual chat message model."""

    model_config = ConfigDict(extra="forbid")

    role: MessageRole
    content: str
    timestamp: datetime


class Checkpoint(BaseModel):
    """Persisted conversation history for one phone."""

    model_config = ConfigDict(extra="forbid")

    phone: str
    messages: List[ChatMessage] = Field(default_factory=list)
    conversation_started_at: datetime
    last_message_at: datetime

    def history(self) -> List[Dict[str, str]]:
        """Messages as role-tagged dicts for the agent."""
        return [{"role": m.role.value, "content": m.content} for m in self.messages]

    def transcript(self) -> str:
        """Plain-text transcript used for digests."""
        return "\n".join(f"{m.role.value}: {m.content}" for m in self.messages)


@dataclass
class ConversationContext:
    """Timing context used to pick the tone of the system prompt."""
    local_time: datetime
    conversation_duration_minutes: Optional[int] = None
    time_since_last_message_minutes: Optional[int] = None
    last_digest_topic: Optional[str] = None
