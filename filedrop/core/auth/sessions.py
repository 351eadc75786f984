"""
In-memory session tracking for the shared dashboard password.

There are no user accounts: anyone who knows the admin password gets an
opaque bearer token, carried by the caller (a cookie, in practice). The
table only ever holds SHA-256 digests of tokens, so a dump of process
memory does not hand out live credentials.

Expired sessions are removed lazily: on lookup of that session, and by a
full sweep every time a new session is created. That keeps the table
bounded in steady state without a background timer thread.
"""

import hashlib
import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, MutableMapping, Optional

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "upload_session"
SESSION_DURATION_SECONDS = 7 * 24 * 60 * 60  # 7 days

# 32 random bytes = 256 bits of entropy
TOKEN_BYTES = 32


def hash_token(token: str) -> str:
    """One-way digest used as the table key."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Session:
    """
    A live session entry.

    Frozen because sessions are never extended: a new login creates a
    new entry instead of sliding the old one's expiry.
    """
    token_hash: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class SessionManager:
    """
    Validates the admin password and tracks bearer sessions.

    One instance owns its table for its whole lifetime. The application
    factory creates it and hangs it on app.state; tests build a fresh one
    per case. Every outcome (bad password, unknown token, expired token)
    is a boolean, never an exception.

    The lock guards the read-modify-write sequences (lookup + evict,
    insert + sweep). FastAPI runs sync dependencies in a threadpool, so
    several threads can reach the table at once.
    """

    def __init__(
        self,
        admin_password: Optional[str],
        ttl_seconds: int = SESSION_DURATION_SECONDS,
        clock: Callable[[], float] = time.time,
        table: Optional[MutableMapping[str, Session]] = None,
    ) -> None:
        self._admin_password = admin_password or ""
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: MutableMapping[str, Session] = table if table is not None else {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @property
    def active_count(self) -> int:
        """Number of entries currently stored (expired ones included until swept)."""
        with self._lock:
            return len(self._sessions)

    def validate_password(self, candidate: str) -> bool:
        """
        Check a login attempt against the configured password.

        Fails closed when no password is configured. Length is not
        treated as secret, so a mismatch returns early; equal-length
        inputs go through hmac.compare_digest, whose running time does
        not depend on how many leading bytes match.
        """
        if not self._admin_password:
            logger.error("ADMIN_PASSWORD is not configured, rejecting login")
            return False

        candidate_bytes = candidate.encode("utf-8")
        stored_bytes = self._admin_password.encode("utf-8")

        if len(candidate_bytes) != len(stored_bytes):
            return False

        return hmac.compare_digest(candidate_bytes, stored_bytes)

    def create_session(self) -> str:
        """
        Issue a new bearer token.

        Only the token's hash is stored. Creating a session also sweeps
        every expired entry out of the table.
        """
        token = secrets.token_hex(TOKEN_BYTES)
        token_hash = hash_token(token)
        now = self._clock()

        with self._lock:
            self._sessions[token_hash] = Session(
                token_hash=token_hash,
                expires_at=now + self._ttl_seconds,
            )
            expired = [
                key for key, session in self._sessions.items()
                if session.is_expired(now)
            ]
            for key in expired:
                del self._sessions[key]

        if expired:
            logger.debug("Evicted expired sessions", extra={"count": len(expired)})

        return token

    def is_valid_session(self, token: Optional[str]) -> bool:
        """True iff the token maps to a stored, unexpired session."""
        if not token:
            return False

        token_hash = hash_token(token)

        with self._lock:
            session = self._sessions.get(token_hash)
            if session is None:
                return False

            if session.is_expired(self._clock()):
                del self._sessions[token_hash]
                return False

        return True

    def destroy_session(self, token: Optional[str]) -> None:
        """Forget a session. Unknown tokens are ignored."""
        if not token:
            return

        with self._lock:
            self._sessions.pop(hash_token(token), None)
