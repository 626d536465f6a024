"""Capture session tracking."""

from .models import SessionRecord, SessionStart
from .registry import SessionNotFoundError, SessionRegistry

__all__ = [
    "SessionNotFoundError",
    "SessionRecord",
    "SessionRegistry",
    "SessionStart",
]
