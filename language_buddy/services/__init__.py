"""
Service layer for the Language Buddy service.
"""

from .subscriber import SubscriberService
from .conversation import ConversationService
from .onboarding import OnboardingService
from .digest import DigestService
from .commands import CommandHandler
from .scheduler import ProactiveScheduler
from .external import WhatsAppClient, BillingClient
from .messaging import MessagingService

__all__ = [
    "SubscriberService",
    "ConversationService",
    "OnboardingService",
    "DigestService",
    "CommandHandler",
    "ProactiveScheduler",
    "WhatsAppClient",
    "BillingClient",
    "MessagingService",
]
