"""
Enums for the Language Buddy service.
"""

from .onboarding import OnboardingStep
from .conversation import MessageRole, SubscriberTier, CommandResult

__all__ = [
    "OnboardingStep",
    "MessageRole",
    "SubscriberTier",
    "CommandResult",
]
