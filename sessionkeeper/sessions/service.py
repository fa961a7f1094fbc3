"""
Session lifecycle service.

Wraps a ``SessionRepository`` with validity, creation and refresh rules. The
service owns no I/O details; every read and write goes through the repository.
"""

import logging
import time
from typing import Callable, List, Optional

from sessionkeeper.core.exceptions import SessionIdCollisionError, SessionStorageError
from sessionkeeper.core.security import generate_session_id, mask_session_id
from sessionkeeper.sessions.entity import Session, SessionConfig
from sessionkeeper.sessions.repository import SessionRepository

logger = logging.getLogger(__name__)

# Attempts at drawing an unused id before giving up
MAX_ID_ATTEMPTS = 5


def _system_clock() -> int:
    return int(time.time())


class SessionService:
    """Creation, validation, refresh and removal of sessions."""

    def __init__(
        self,
        repository: SessionRepository,
        config: SessionConfig,
        clock: Optional[Callable[[], int]] = None,
        id_generator: Callable[[], str] = generate_session_id,
    ):
        self.repository = repository
        self.config = config
        self._clock = clock or _system_clock
        self._generate_id = id_generator

    def now(self) -> int:
        return self._clock()

    def find_valid(self, session_id: Optional[str]) -> Optional[Session]:
        """
        Return the stored session if it has not expired.

        Expired rows are left in place for the sweep.

        Args:
            session_id: Candidate id from a credential or fingerprint match

        Returns:
            The session, or None when absent or expired

        Raises:
            SessionStorageError: If the repository cannot be read
        """
        if not session_id:
            return None

        session = self.repository.find_by_id(session_id)
        if session is None:
            return None

        if not session.is_valid(self.now()):
            logger.debug("Session %s has expired", mask_session_id(session_id))
            return None

        return session

    def create(self, payload: str) -> Session:
        """
        Create and persist a new anonymous session.

        Args:
            payload: Serialized fingerprint snapshot

        Returns:
            The new session

        Raises:
            SessionStorageError: If no unused id could be drawn or the insert fails
        """
        now = self.now()
        for _ in range(MAX_ID_ATTEMPTS):
            session = Session(
                id=self._generate_id(),
                user_id=None,
                payload=payload,
                expires_at=now + self.config.session_ttl,
                created_at=now,
                updated_at=now,
            )
            try:
                self.repository.add(session)
            except SessionIdCollisionError:
                logger.warning("Session id collision, drawing a new id")
                continue
            return session
        raise SessionStorageError(f"Could not allocate a unique session id after {MAX_ID_ATTEMPTS} attempts")

    def touch(self, session: Session) -> Session:
        """
        Slide the expiry of an active session forward.

        Only writes once less than ``refresh_threshold`` of the TTL remains,
        and never moves ``expires_at`` backwards.
        """
        now = self.now()
        ttl = self.config.session_ttl
        if session.remaining(now) >= ttl * self.config.refresh_threshold:
            return session

        session.expires_at = max(session.expires_at, now + ttl)
        session.updated_at = max(session.updated_at, now)
        self.repository.save(session)
        logger.debug("Refreshed session %s", mask_session_id(session.id))
        return session

    def assign_user(self, session: Session, user_id: int) -> Session:
        """Bind an authenticated user to the session"""
        session.user_id = user_id
        session.updated_at = max(session.updated_at, self.now())
        self.repository.save(session)
        logger.info(
            "Session bound to user",
            extra={"sid": mask_session_id(session.id), "user_id": user_id},
        )
        return session

    def find_by_user(self, user_id: int) -> List[Session]:
        """Valid sessions belonging to ``user_id``"""
        now = self.now()
        return [s for s in self.repository.find_by_user_id(user_id) if s.is_valid(now)]

    def delete(self, session_id: str) -> None:
        self.repository.delete(session_id)

    def delete_expired(self) -> int:
        """Remove every expired session and return how many were removed"""
        deleted = self.repository.delete_expired(self.now())
        logger.info("Expired sessions swept", extra={"deleted": deleted})
        return deleted
