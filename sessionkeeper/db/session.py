from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from sessionkeeper.core.config import settings


def get_connect_args(database_url: str) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if database_url.startswith("sqlite"):
        # SQLite connections are shared across the threadpool workers
        return {"check_same_thread": False}
    # PostgreSQL and other databases don't need special args
    return {}


def build_engine(database_url: str) -> Engine:
    """Create an engine with the connection args appropriate for the URL"""
    return create_engine(
        database_url,
        connect_args=get_connect_args(database_url),
        pool_pre_ping=True,
    )


# Create database engine; no connection is opened until first use
engine = build_engine(settings.database_url)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_sync(factory: sessionmaker = SessionLocal) -> Generator[Session, None, None]:
    """Get a synchronous DB session with proper resource management"""
    db = factory()
    try:
        yield db
    finally:
        db.close()
