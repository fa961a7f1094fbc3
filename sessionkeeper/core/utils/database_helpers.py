"""
Database helper utilities for SessionKeeper.

Provides database-agnostic inspection helpers for both SQLite and PostgreSQL.
"""

import logging
from typing import Any, Dict

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def get_database_type(database_url: str) -> str:
    """
    Get the database type from a database URL.

    Returns:
        str: Database type ('sqlite', 'postgresql', etc.)
    """
    url = database_url.lower()
    if url.startswith("sqlite"):
        return "sqlite"
    elif url.startswith("postgresql"):
        return "postgresql"
    # Extract from URL scheme
    return url.split("://")[0].split("+")[0] if "://" in url else "unknown"


def get_database_info(engine: Engine) -> Dict[str, Any]:
    """
    Get database connection information and metadata.

    Returns:
        Dict containing database type, connection status, and metadata
    """
    db_type = get_database_type(engine.url.render_as_string(hide_password=True))
    info: Dict[str, Any] = {
        "type": db_type,
        "connected": False,
        "tables": [],
        "version": None,
        "error": None
    }

    try:
        with engine.connect() as conn:
            info["connected"] = True

            if db_type == "sqlite":
                info["version"] = conn.execute(text("SELECT sqlite_version()")).scalar()
            elif db_type == "postgresql":
                version_str = conn.execute(text("SELECT version()")).scalar()
                # Extract just the version number
                info["version"] = version_str.split()[1] if version_str else "unknown"

        info["tables"] = inspect(engine).get_table_names()

    except SQLAlchemyError as e:
        logger.error(f"Database connection error: {e}")
        info["error"] = str(e)

    return info


def check_database_health(engine: Engine) -> Dict[str, Any]:
    """
    Perform database health check.

    Returns:
        Dict containing health status and whether the sessions table exists
    """
    db_info = get_database_info(engine)
    health = {
        "status": "healthy",
        "database_type": db_info["type"],
        "connected": db_info["connected"],
        "table_count": len(db_info["tables"]),
        "sessions_table": "sessions" in db_info["tables"],
        "last_error": db_info["error"],
    }

    if db_info["error"] or not db_info["connected"]:
        health["status"] = "unhealthy"
        health["last_error"] = db_info["error"] or "Unable to connect to database"
    elif not health["sessions_table"]:
        health["status"] = "warning"
        health["last_error"] = "Sessions table not found - database may need initialization"

    return health
