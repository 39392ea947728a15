"""
Onboarding-related exceptions.
"""


class OnboardingError(Exception):
    """Base exception for onboarding errors."""
    pass


class ConsentRequiredError(OnboardingError):
    """Exception raised when a personal field is written before GDPR consent."""
    pass


class OnboardingIncompleteError(OnboardingError):
    """Exception raised when onboarding is completed without the required data."""
    pass


class StepOrderError(OnboardingError):
    """Exception raised when an onboarding step would move backwards."""
    pass
