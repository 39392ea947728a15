"""
Conversation session control.
"""

from .service import (
    ConversationService,
    INITIATION_FAILED_MESSAGE,
    ONE_SHOT_FAILED_MESSAGE,
)

__all__ = [
    "ConversationService",
    "INITIATION_FAILED_MESSAGE",
    "ONE_SHOT_FAILED_MESSAGE",
]
