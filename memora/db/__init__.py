"""Persistence layer: SQLAlchemy models, sessions and keyed locks."""

from memora.db.database import Database, get_database, init_db
from memora.db.locks import KeyedLock

__all__ = ["Database", "KeyedLock", "get_database", "init_db"]
