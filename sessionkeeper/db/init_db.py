"""Initialize the database with proper schema"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from sessionkeeper.db.base import Base

# Import all models explicitly to register them with SQLAlchemy
from sessionkeeper.db.models import session_record as _model_session_record  # noqa: F401

logger = logging.getLogger("sessionkeeper.database")


def init_database(bind: Optional[Engine] = None) -> None:
    """Create all tables with proper schema"""
    if bind is None:
        from sessionkeeper.db.session import engine as bind

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=bind)

        table_names = [table.name for table in Base.metadata.sorted_tables]
        logger.info("Database initialized", extra={
            "table_count": len(table_names),
            "tables": table_names
        })

    except Exception as e:
        logger.error(f"Error initializing database: {e}", extra={
            "error_type": type(e).__name__,
            "database_url": "[REDACTED]"  # Don't log connection strings
        })
        raise


if __name__ == "__main__":
    init_database()
