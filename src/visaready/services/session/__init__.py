"""
Session Service module.
Provides server-side validation session storage and coordination.
"""

from .session_service import ValidationSessionService
from .session_store import InMemorySessionStore

__all__ = ['InMemorySessionStore', 'ValidationSessionService']
