# src/parley/models/__init__.py
"""SQLAlchemy models for the Parley application."""

from .direct_message import DirectMessage
from .reaction import MessageReaction
from .read_marker import ReadMarker
from .thread import DMThread
from .user import User

__all__ = [
    "DirectMessage",
    "DMThread",
    "MessageReaction",
    "ReadMarker",
    "User",
]
