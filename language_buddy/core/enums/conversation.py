"""
Conversation-related enums.
"""

from enum import Enum


class MessageRole(str, Enum):
    """Role of a message in the conversation history."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class SubscriberTier(str, Enum):
    """How the eligibility gate sees a subscriber."""

    PREMIUM = "premium"
    TRIAL = "trial"
    FREE = "free"


class CommandResult(str, Enum):
    """Outcome of user command handling."""

    HANDLED = "handled"
    NOTHING = "nothing"
