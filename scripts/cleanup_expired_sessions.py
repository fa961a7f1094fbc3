#!/usr/bin/env python3
"""
Expired session sweep for SessionKeeper.

Meant to be run from cron or another scheduler; the request path never deletes
expired sessions itself.
"""

import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from sessionkeeper.core.config import settings
from sessionkeeper.core.exceptions import SessionStorageError
from sessionkeeper.core.utils.logging_config import init_application_logging
from sessionkeeper.db.session import SessionLocal
from sessionkeeper.sessions.entity import SessionConfig
from sessionkeeper.sessions.service import SessionService
from sessionkeeper.sessions.sql_repository import SqlAlchemySessionRepository

logger = logging.getLogger("sessionkeeper.cleanup")


def main() -> bool:
    init_application_logging(settings)
    service = SessionService(
        SqlAlchemySessionRepository(SessionLocal),
        SessionConfig.from_settings(settings),
    )
    try:
        deleted = service.delete_expired()
    except SessionStorageError as e:
        logger.error("Expired session sweep failed: %s", e)
        return False
    print(f"Deleted {deleted} expired session(s)")
    return True


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
