from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from memora.config import get_settings
from memora.db.models.base import Base


def _engine_kwargs(url: str, echo: bool) -> dict:
    """SQLite needs cross-thread access; in-memory SQLite needs a single shared connection."""
    kwargs: dict = {"echo": echo, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return kwargs


class Database:
    """Engine plus session factory for one database URL."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine: Engine = create_engine(url, **_engine_kwargs(url, echo))
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    def init_db(self) -> None:
        """Initialize database tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables initialized")

    def check_health(self) -> tuple[str, str | None]:
        """
        Check database connectivity.

        Returns:
            Tuple of (status, error_message). Status is "ok" or "error".
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return "ok", None
        except SQLAlchemyError as e:
            return "error", str(e)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def read_scope(self) -> Generator[Session, None, None]:
        """Session for read-only work; nothing is committed."""
        session = self.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


@lru_cache(maxsize=1)
def get_database() -> Database:
    """Process-wide database built from settings."""
    settings = get_settings()
    return Database(settings.database_url, echo=settings.log_level == "DEBUG")


def init_db() -> None:
    """Initialize tables on the configured database."""
    get_database().init_db()


# ========================================
# Constraint violations
# ========================================

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def _violation_kind(error: IntegrityError) -> str | None:
    """SQLSTATE from PostgreSQL drivers, or a code derived from SQLite's message."""
    orig = error.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate:
        return sqlstate
    message = str(orig).upper()
    if "UNIQUE CONSTRAINT" in message or "PRIMARY KEY" in message:
        return UNIQUE_VIOLATION
    if "FOREIGN KEY" in message:
        return FOREIGN_KEY_VIOLATION
    return None


def is_unique_violation(error: IntegrityError) -> bool:
    return _violation_kind(error) == UNIQUE_VIOLATION


def is_foreign_key_violation(error: IntegrityError) -> bool:
    return _violation_kind(error) == FOREIGN_KEY_VIOLATION
