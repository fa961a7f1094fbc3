"""SQLAlchemy-backed session repository.

Each operation opens its own short-lived DB session, so the repository can be
shared by concurrent request workers. All ``SQLAlchemyError`` failures are
re-raised as ``SessionStorageError``.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from sessionkeeper.core.exceptions import SessionIdCollisionError, SessionStorageError
from sessionkeeper.db.models.session_record import SessionRecord
from sessionkeeper.db.session import get_db_sync
from sessionkeeper.sessions.entity import Session

logger = logging.getLogger(__name__)


def _to_record(session: Session) -> SessionRecord:
    return SessionRecord(
        id=session.id,
        user_id=session.user_id,
        payload=session.payload,
        expires_at=session.expires_at,
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


def _to_entity(row: SessionRecord) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        payload=row.payload,
        expires_at=row.expires_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlAlchemySessionRepository:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._factory = session_factory

    def find_by_id(self, session_id: str) -> Optional[Session]:
        try:
            with get_db_sync(self._factory) as db:
                row = db.get(SessionRecord, session_id)
                return _to_entity(row) if row else None
        except SQLAlchemyError as e:
            logger.error("Session lookup failed: %s", type(e).__name__)
            raise SessionStorageError("Session lookup failed") from e

    def find_by_user_id(self, user_id: int) -> List[Session]:
        stmt = (
            select(SessionRecord)
            .where(SessionRecord.user_id == user_id)
            .order_by(SessionRecord.updated_at.desc())
        )
        return self._find_many(stmt)

    def find_all(self) -> List[Session]:
        stmt = select(SessionRecord).order_by(SessionRecord.updated_at.desc())
        return self._find_many(stmt)

    def _find_many(self, stmt) -> List[Session]:
        try:
            with get_db_sync(self._factory) as db:
                return [_to_entity(row) for row in db.scalars(stmt)]
        except SQLAlchemyError as e:
            logger.error("Session listing failed: %s", type(e).__name__)
            raise SessionStorageError("Session listing failed") from e

    def add(self, session: Session) -> None:
        """Insert a new row; the primary key rejects an id that is already taken."""
        with get_db_sync(self._factory) as db:
            try:
                db.add(_to_record(session))
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise SessionIdCollisionError("Session id already exists") from e
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Session insert failed: %s", type(e).__name__)
                raise SessionStorageError("Session insert failed") from e

    def save(self, session: Session) -> None:
        """Insert or update the row for ``session.id``."""
        with get_db_sync(self._factory) as db:
            try:
                db.merge(_to_record(session))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Session save failed: %s", type(e).__name__)
                raise SessionStorageError("Session save failed") from e

    def delete(self, session_id: str) -> None:
        self._execute_delete(delete(SessionRecord).where(SessionRecord.id == session_id))

    def delete_expired(self, now: int) -> int:
        return self._execute_delete(delete(SessionRecord).where(SessionRecord.expires_at <= now))

    def _execute_delete(self, stmt) -> int:
        with get_db_sync(self._factory) as db:
            try:
                result = db.execute(stmt)
                db.commit()
                return result.rowcount or 0
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Session delete failed: %s", type(e).__name__)
                raise SessionStorageError("Session delete failed") from e
