"""
Conversation-related exceptions.
"""


class ConversationError(Exception):
    """Base exception for conversation errors."""
    pass


class ConversationAgentError(ConversationError):
    """Exception raised when the conversation agent fails or times out."""
    pass
