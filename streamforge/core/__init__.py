"""Core module for configuration and utilities."""

from streamforge.core.config import settings
from streamforge.core.database import Base, async_session_maker

__all__ = [
    "settings",
    "Base",
    "async_session_maker",
]
