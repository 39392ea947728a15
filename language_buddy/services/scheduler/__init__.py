"""
Proactive scheduling.
"""

from .service import ProactiveScheduler, SWEEP_JOB_ID

__all__ = [
    "ProactiveScheduler",
    "SWEEP_JOB_ID",
]
