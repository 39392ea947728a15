"""
Onboarding flow.
"""

from .service import OnboardingService, ONBOARDING_COMPLETE_MESSAGE

__all__ = [
    "OnboardingService",
    "ONBOARDING_COMPLETE_MESSAGE",
]
