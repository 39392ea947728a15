"""
Subscriber records and eligibility.
"""

from .service import SubscriberService

__all__ = [
    "SubscriberService",
]
