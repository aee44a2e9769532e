"""
Core module for the back-office access core.

Exports the main configuration component.
"""

from src.core.config import settings

__all__ = [
    # Config
    "settings",
]
