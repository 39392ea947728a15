"""
HTTP handlers.
"""

from .health import HealthHandler
from .initiate import InitiateHandler

__all__ = [
    "HealthHandler",
    "InitiateHandler",
]
