"""
SQLite-backed persistence.
"""

from .base import SQLiteStore
from .subscriber_store import SubscriberStore, DateClaim
from .onboarding_store import OnboardingStore
from .checkpoint_store import CheckpointStore
from .dedup_store import DedupStore

__all__ = [
    "SQLiteStore",
    "SubscriberStore",
    "DateClaim",
    "OnboardingStore",
    "CheckpointStore",
    "DedupStore",
]
