"""
Shared-password authentication and bearer session tracking.
"""

from .sessions import (
    SESSION_COOKIE_NAME,
    SESSION_DURATION_SECONDS,
    Session,
    SessionManager,
    hash_token,
)

__all__ = [
    "SESSION_COOKIE_NAME",
    "SESSION_DURATION_SECONDS",
    "Session",
    "SessionManager",
    "hash_token",
]
