"""
Timezone and civil-date utilities.
"""

import re
from datetime import date, datetime
from typing import Optional

import pytz

from .logging import get_logger

logger = get_logger("buddy.timezone")

# Common city names users give instead of IANA zones
CITY_TIMEZONES = {
    "lima": "America/Lima",
    "london": "Europe/London",
    "paris": "Europe/Paris",
    "berlin": "Europe/Berlin",
    "tokyo": "Asia/Tokyo",
    "new york": "America/New_York",
    "los angeles": "America/Los_Angeles",
    "chicago": "America/Chicago",
    "madrid": "Europe/Madrid",
    "rome": "Europe/Rome",
}

_OFFSET_RE = re.compile(r"^(?:utc|gmt)?\s*([+-])\s*(\d{1,2})(?::?00)?$", re.IGNORECASE)


def _aware(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if instant.tzinfo is None:
        return pytz.utc.localize(instant)
    return instant


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(pytz.utc)


def local_now(instant: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Convert ``instant`` to wall-clock time in ``tz``."""
    return _aware(instant).astimezone(tz)


def civil_date(instant: datetime, tz: pytz.BaseTzInfo) -> date:
    """Calendar date of ``instant`` as observed in ``tz``."""
    return local_now(instant, tz).date()


def resolve_timezone(name: Optional[str], fallback: str = "UTC") -> pytz.BaseTzInfo:
    """Return the tzinfo for ``name``, or for ``fallback`` if unset or unknown."""
    if name:
        try:
            return pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            logger.warning(f"timezone: unknown zone {name!r}, using {fallback}")
    return pytz.timezone(fallback)


def ensure_valid_timezone(value: Optional[str]) -> str:
    """Normalize user-supplied timezone text to an IANA zone name.

    Accepts IANA names, a handful of common city names and numeric UTC
    offsets such as ``+2`` or ``UTC-5``. Anything else becomes ``UTC``.
    """
    if not value or not isinstance(value, str):
        return "UTC"

    text = value.strip()
    if text in pytz.all_timezones_set:
        return text

    city = CITY_TIMEZONES.get(text.lower())
    if city:
        return city

    match = _OFFSET_RE.match(text)
    if match:
        sign, hours = match.group(1), int(match.group(2))
        if hours == 0:
            return "UTC"
        # Etc/GMT zones use inverted signs
        inverted = "-" if sign == "+" else "+"
        zone = f"Etc/GMT{inverted}{hours}"
        if zone in pytz.all_timezones_set:
            return zone

    for zone in pytz.all_timezones:
        if zone.lower() == text.lower():
            return zone

    logger.info(f"timezone: could not interpret {value!r}, defaulting to UTC")
    return "UTC"


def to_utc_iso(instant: datetime) -> str:
    """Sortable UTC ISO string for storage and comparisons in SQL."""
    return _aware(instant).astimezone(pytz.utc).isoformat(timespec="microseconds")
