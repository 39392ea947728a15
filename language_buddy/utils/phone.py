"""
Phone number utilities.
"""

import re
from typing import Optional


def sanitize_phone_number(phone: Optional[str]) -> str:
    """Strip everything but digits, so ``+49 170-123`` becomes ``49170123``."""
    if not phone or not isinstance(phone, str):
        return ""
    return re.sub(r"\D", "", phone)
