"""Session store contract and the in-process implementation."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, List, Optional, Protocol, runtime_checkable

from sessionkeeper.core.exceptions import SessionIdCollisionError
from sessionkeeper.core.security import mask_session_id
from sessionkeeper.sessions.entity import Session

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionRepository(Protocol):
    """Durable keyed storage for session records.

    Implementations must be safe under concurrent calls from request workers
    and raise ``SessionStorageError`` on backend failures. ``add`` inserts only
    and raises ``SessionIdCollisionError`` when the id is taken; ``save``
    inserts or overwrites.
    """

    def find_by_id(self, session_id: str) -> Optional[Session]: ...

    def find_by_user_id(self, user_id: int) -> List[Session]: ...

    def find_all(self) -> List[Session]: ...

    def add(self, session: Session) -> None: ...

    def save(self, session: Session) -> None: ...

    def delete(self, session_id: str) -> None: ...

    def delete_expired(self, now: int) -> int: ...


class InMemorySessionRepository:
    """Dict-backed repository for tests and single-process deployments.

    Stored objects are returned by reference, so a session read twice is the
    same object.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def find_by_id(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def find_by_user_id(self, user_id: int) -> List[Session]:
        with self._lock:
            return [s for s in self._sessions.values() if s.user_id == user_id]

    def find_all(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def add(self, session: Session) -> None:
        with self._lock:
            if session.id in self._sessions:
                raise SessionIdCollisionError(f"Session id {mask_session_id(session.id)} already exists")
            self._sessions[session.id] = session

    def save(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def delete_expired(self, now: int) -> int:
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if not s.is_valid(now)]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)
