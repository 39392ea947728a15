"""
Onboarding-related enums.
"""

from enum import Enum


class OnboardingStep(str, Enum):
    """Enumeration of the onboarding flow steps, in their fixed order."""

    GDPR_CONSENT = "gdpr_consent"
    PROFILE_GATHERING = "profile_gathering"
    TARGET_LANGUAGE = "target_language"
    EXPLAINING_FEATURES = "explaining_features"
    ASSESSMENT_CONVERSATION = "assessment_conversation"
    COMPLETED = "completed"

    @property
    def index(self) -> int:
        """Position of the step in the onboarding order."""
        return list(OnboardingStep).index(self)

    def next(self) -> "OnboardingStep":
        """Return the step that follows this one."""
        steps = list(OnboardingStep)
        if self is OnboardingStep.COMPLETED:
            return self
        return steps[self.index + 1]
