"""
Inbound message routing.
"""

from .service import (
    MessagingService,
    UNSUPPORTED_MESSAGE,
    PROCESSING_ERROR_MESSAGE,
    DAILY_LIMIT_MESSAGE,
    TRIAL_ENDED_MESSAGE,
)

__all__ = [
    "MessagingService",
    "UNSUPPORTED_MESSAGE",
    "PROCESSING_ERROR_MESSAGE",
    "DAILY_LIMIT_MESSAGE",
    "TRIAL_ENDED_MESSAGE",
]
