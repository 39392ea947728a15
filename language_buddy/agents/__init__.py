"""
AI agents module for the Language Buddy service.
"""

from .buddy import ConversationAgent, OpenAIConversationAgent

__all__ = [
    "ConversationAgent",
    "OpenAIConversationAgent",
]
