"""In-memory login sessions for the demo target service."""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class Session:
    username: str
    expires_at: float


class SessionStore:
    """
    Thread-safe token -> session map with expiry.

    Args:
        ttl_seconds: Lifetime of each new session.
        clock: Time source, injectable for tests.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def create(self, username: str) -> str:
        """Open a session for *username* and return its token."""
        token = str(uuid.uuid4())
        with self._lock:
            self._sessions[token] = Session(username, self._clock() + self.ttl_seconds)
        return token

    def is_valid(self, token: str) -> bool:
        with self._lock:
            session = self._sessions.get(token)
        return session is not None and self._clock() < session.expires_at

    def purge_expired(self) -> int:
        """Drop expired sessions and return how many are still active."""
        now = self._clock()
        with self._lock:
            expired = [token for token, s in self._sessions.items() if now >= s.expires_at]
            for token in expired:
                del self._sessions[token]
            return len(self._sessions)
