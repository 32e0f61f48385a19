"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository modules for content, progress, read-along segments,
  sync logs and users
"""

from audiolearn.db.database import RecordNotFoundError, get_db, init_db

__all__ = ["RecordNotFoundError", "get_db", "init_db"]
