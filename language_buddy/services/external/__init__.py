"""
External collaborators: messaging transport and billing.
"""

from .whatsapp import WhatsAppClient
from .billing import BillingClient

__all__ = [
    "WhatsAppClient",
    "BillingClient",
]
