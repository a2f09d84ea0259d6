"""
In-memory session table.

Sessions are held for the lifetime of the process only. Lookups take a
shared lock so validity checks never wait on each other; create, remove and
the expiry sweep take the exclusive lock. Expired entries are swept when a
new session is created, not on lookup.
"""

import secrets
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterator, Optional

from ..logging import get_logger, session_hint
from .verifier import utc_now

logger = get_logger("sessions")

SESSION_ID_BYTES = 32


class ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class Session:
    """A server-held login. Valid while the clock is before ``expires_at``."""
    session_id: str
    user_id: str
    created_at: datetime
    expires_at: datetime

    def is_valid_at(self, now: datetime) -> bool:
        return now < self.expires_at


class SessionRegistry:
    """Table of active sessions keyed by their opaque id."""

    def __init__(
        self,
        timeout: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ):
        if timeout <= timedelta(0):
            raise ValueError("Session timeout must be positive")
        self.timeout = timeout
        self.clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = ReadWriteLock()

    def create(self, user_id: str) -> Session:
        """Issue a new session for ``user_id`` and sweep expired ones."""
        now = self.clock()
        with self._lock.write():
            session_id = secrets.token_urlsafe(SESSION_ID_BYTES)
            while session_id in self._sessions:
                session_id = secrets.token_urlsafe(SESSION_ID_BYTES)

            session = Session(
                session_id=session_id,
                user_id=user_id,
                created_at=now,
                expires_at=now + self.timeout,
            )
            self._sessions[session_id] = session
            purged = self._purge_expired(now)

        if purged:
            logger.debug(f"Purged {purged} expired session(s)")
        logger.info(f"Session {session_hint(session_id)} created for {user_id}")
        return session

    def is_valid(self, session_id: Optional[str]) -> bool:
        if not session_id:
            return False
        now = self.clock()
        with self._lock.read():
            session = self._sessions.get(session_id)
        return session is not None and session.is_valid_at(now)

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        with self._lock.read():
            return self._sessions.get(session_id)

    def remove(self, session_id: Optional[str]) -> None:
        """Drop a session. Unknown ids are ignored."""
        if not session_id:
            return
        with self._lock.write():
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info(f"Session {session_hint(session_id)} removed")

    def cleanup(self) -> int:
        """Sweep expired sessions now. Returns how many were dropped."""
        now = self.clock()
        with self._lock.write():
            return self._purge_expired(now)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._sessions)

    def _purge_expired(self, now: datetime) -> int:
        # Caller holds the write lock
        expired = [sid for sid, s in self._sessions.items() if not s.is_valid_at(now)]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)
