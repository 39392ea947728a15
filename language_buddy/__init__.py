"""
Language Buddy - WhatsApp language practice agent.
"""

__version__ = "1.0.0"
