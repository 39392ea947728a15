"""
Logging helpers.
"""

import logging
from typing import Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the ``buddy`` logger tree."""
    global _configured
    root = logging.getLogger("buddy")
    root.setLevel(level.upper())
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the ``buddy`` namespace."""
    if not name:
        return logging.getLogger("buddy")
    if name != "buddy" and not name.startswith("buddy."):
        name = f"buddy.{name}"
    return logging.getLogger(name)
