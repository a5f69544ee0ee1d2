"""
Dependency providers for the API.

Tests swap these out through `app.dependency_overrides`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from functools import lru_cache

from memora.config import Settings, get_settings
from memora.db.database import get_database
from memora.services import Services, build_services


@lru_cache(maxsize=1)
def get_services() -> Services:
    """Process-wide services bound to the configured database."""
    return build_services(get_database(), get_settings())


def get_now() -> datetime:
    return datetime.now(UTC)


def get_app_settings() -> Settings:
    return get_settings()
