"""
Configuration management for the Language Buddy service.
"""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
