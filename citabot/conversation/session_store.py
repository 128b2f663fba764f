"""
In-memory owner of every conversation Session.

The identity -> Session mapping is guarded by one lock held only while the
mapping changes. The Session objects themselves are not synchronized; callers
that mutate a session hold the identity's lock from ``lock_for`` for the
whole state transition, so two deliveries from the same sender are handled
one after the other while different senders proceed in parallel.

Sessions are never evicted: memory grows with the number of distinct
identities seen since the process started.
"""

import logging
import threading
from typing import Optional

from citabot.schemas.session_schema import Session

logger = logging.getLogger(__name__)


class SlotStore:
    """Creates, returns and clears per-identity sessions."""

    def __init__(self, history_limit: int = 10) -> None:
        self._sessions: dict[str, Session] = {}
        self._identity_locks: dict[str, threading.RLock] = {}
        self._lock = threading.Lock()
        self._history_limit = history_limit

    def get_or_create(self, identity: str) -> Session:
        """Return the identity's session, creating a zero-valued one on first access."""
        with self._lock:
            session = self._sessions.get(identity)
            if session is None:
                session = Session(identity=identity, history_limit=self._history_limit)
                self._sessions[identity] = session
                logger.debug("Session created for %s", identity)
            return session

    def get(self, identity: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(identity)

    def clear(self, identity: str) -> None:
        """Remove the identity's session entirely."""
        with self._lock:
            if self._sessions.pop(identity, None) is not None:
                logger.debug("Session cleared for %s", identity)

    def lock_for(self, identity: str) -> threading.RLock:
        """Per-identity lock serializing state transitions for one sender."""
        with self._lock:
            lock = self._identity_locks.get(identity)
            if lock is None:
                lock = threading.RLock()
                self._identity_locks[identity] = lock
            return lock

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._sessions
