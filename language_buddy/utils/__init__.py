"""
Utility modules for the Language Buddy service.
"""

from .text import TextProcessor
from .phone import sanitize_phone_number
from .timezone import (
    civil_date,
    local_now,
    utc_now,
    resolve_timezone,
    ensure_valid_timezone,
)
from .logging import get_logger, configure_logging

__all__ = [
    "TextProcessor",
    "sanitize_phone_number",
    "civil_date",
    "local_now",
    "utc_now",
    "resolve_timezone",
    "ensure_valid_timezone",
    "get_logger",
    "configure_logging",
]
