"""
User commands.
"""

from .handler import CommandHandler

__all__ = [
    "CommandHandler",
]
