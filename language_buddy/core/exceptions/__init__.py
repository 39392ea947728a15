"""
Custom exceptions for the Language Buddy service.
"""

from .onboarding import (
    OnboardingError,
    ConsentRequiredError,
    OnboardingIncompleteError,
    StepOrderError,
)
from .conversation import ConversationError, ConversationAgentError
from .external import ExternalAPIError, WhatsAppAPIError, BillingError

__all__ = [
    "OnboardingError",
    "ConsentRequiredError",
    "OnboardingIncompleteError",
    "StepOrderError",
    "ConversationError",
    "ConversationAgentError",
    "ExternalAPIError",
    "WhatsAppAPIError",
    "BillingError",
]
