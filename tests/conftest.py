"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from memora.config import Settings, get_settings  # noqa: E402
from memora.core.mastery import MasteryModel  # noqa: E402
from memora.core.memory_model import MemoryModel  # noqa: E402
from memora.db.database import Database, get_database  # noqa: E402
from memora.services import build_services  # noqa: E402

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (temporary SQLite database)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def t0():
    """Fixed, timezone-aware reference time."""
    return T0


@pytest.fixture
def memory_model():
    return MemoryModel()


@pytest.fixture
def mastery_model():
    return MasteryModel()


@pytest.fixture
def settings():
    """Default settings, isolated from any local .env or MEMORA_* variables."""
    return Settings(_env_file=None, database_url="sqlite://")


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database file with all tables created."""
    database = Database(f"sqlite:///{tmp_path / 'memora-test.db'}")
    database.init_db()
    yield database
    database.dispose()


@pytest.fixture
def services(db, settings):
    return build_services(db, settings)


@pytest.fixture
def sample_content():
    """Knowledge units and items used across integration tests."""
    return {
        "knowledge_units": [
            {"id": "ku-osi", "name": "The OSI Reference Model"},
            {
                "id": "ku-tcp",
                "name": "TCP handshake",
                "p_init": 0.5,
                "p_slip": 0.1,
                "p_guess": 0.2,
                "p_transit": 0.3,
            },
        ],
        "items": [
            {
                "id": "fc-1",
                "kind": "flashcard",
                "front": "What is the OSI model?",
                "back": "A 7-layer reference model for network communication",
                "knowledge_unit_id": "ku-osi",
            },
            {
                "id": "fc-2",
                "kind": "flashcard",
                "front": "Which layer handles routing?",
                "back": "Network Layer (Layer 3)",
                "knowledge_unit_id": "ku-osi",
            },
            {
                "id": "fc-3",
                "kind": "flashcard",
                "front": "Which layer frames bits?",
                "back": "Data Link Layer (Layer 2)",
                "knowledge_unit_id": "ku-osi",
            },
            {
                "id": "fc-syn",
                "kind": "flashcard",
                "front": "First segment of the TCP handshake?",
                "back": "SYN",
                "knowledge_unit_id": "ku-tcp",
            },
            {
                "id": "fc-free",
                "kind": "flashcard",
                "front": "Port of HTTPS?",
                "back": "443",
            },
            {
                "id": "qz-1",
                "kind": "quiz",
                "front": "Which layer of the OSI model handles routing?",
                "back": "Network Layer",
                "knowledge_unit_id": "ku-osi",
            },
        ],
    }


@pytest.fixture
def seeded(services, sample_content):
    """Services over a database holding the sample content."""
    services.content.import_document(sample_content)
    return services


@pytest.fixture
def session_id(seeded, t0):
    """An open flashcard session for student 'alice'."""
    return seeded.sessions.start("alice", "flashcard", t0).session_id


@pytest.fixture
def clear_config_caches():
    """Drop cached settings/database so environment changes take effect."""
    get_settings.cache_clear()
    get_database.cache_clear()
    yield
    get_database.cache_clear()
    get_settings.cache_clear()
