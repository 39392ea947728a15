"""
Conversation digests.
"""

from .service import DigestService, DigestAnalysis

__all__ = [
    "DigestService",
    "DigestAnalysis",
]
