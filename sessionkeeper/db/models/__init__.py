"""Database models"""

from sessionkeeper.db.models.session_record import SessionRecord

__all__ = [
    "SessionRecord",
]
