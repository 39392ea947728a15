"""
Core data models for the Language Buddy service.
"""

from .subscriber import (
    LanguageSkill,
    SubscriberProfile,
    Digest,
    StreakData,
    SubscriberMetadata,
    Subscriber,
)
from .onboarding import (
    PERSONAL_FIELDS,
    OnboardingTempData,
    OnboardingState,
    OnboardingExtraction,
    OnboardingResult,
)
from .conversation import ChatMessage, Checkpoint, ConversationContext
from .webhook import WebhookText, WebhookMessage, InitiateRequest

__all__ = [
    "LanguageSkill",
    "SubscriberProfile",
    "Digest",
    "StreakData",
    "SubscriberMetadata",
    "Subscriber",
    "PERSONAL_FIELDS",
    "OnboardingTempData",
    "OnboardingState",
    "OnboardingExtraction",
    "OnboardingResult",
    "ChatMessage",
    "Checkpoint",
    "ConversationContext",
    "WebhookText",
    "WebhookMessage",
    "InitiateRequest",
]
