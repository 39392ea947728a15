"""
Language buddy agent.
"""

from .agent import ConversationAgent, OpenAIConversationAgent

__all__ = [
    "ConversationAgent",
    "OpenAIConversationAgent",
]
