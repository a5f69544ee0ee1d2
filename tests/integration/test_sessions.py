"""
Integration tests for study sessions.
"""

from datetime import datetime, timedelta

import pytest

from memora.core.errors import InvalidItemKind, NotFoundError, ValidationError
from memora.services import ReviewRequest

pytestmark = pytest.mark.integration


def test_start_and_get(seeded, t0):
    started = seeded.sessions.start("alice", "quiz", t0)

    fetched = seeded.sessions.get(started.session_id)
    assert fetched.student_id == "alice"
    assert fetched.item_kind == "quiz"
    assert fetched.started_at == t0
    assert fetched.ended_at is None
    assert fetched.items_reviewed == 0


def test_end_computes_summary_from_reviews(seeded, session_id, t0):
    for offset, (item_id, grade) in enumerate([("fc-1", 3), ("fc-2", 1), ("fc-3", 4)]):
        seeded.pipeline.handle_review(
            ReviewRequest(session_id, item_id, "flashcard", grade),
            now=t0 + timedelta(minutes=offset),
        )

    ended = seeded.sessions.end(session_id, t0 + timedelta(minutes=10))

    assert ended.ended_at == t0 + timedelta(minutes=10)
    assert ended.items_reviewed == 3
    assert ended.avg_grade == pytest.approx(8 / 3)
    assert ended.total_time_ms == 10 * 60 * 1000


def test_empty_session(seeded, session_id, t0):
    ended = seeded.sessions.end(session_id, t0 + timedelta(seconds=30))
    assert ended.items_reviewed == 0
    assert ended.avg_grade is None


def test_end_twice(seeded, session_id, t0):
    seeded.sessions.end(session_id, t0 + timedelta(minutes=1))
    with pytest.raises(ValidationError):
        seeded.sessions.end(session_id, t0 + timedelta(minutes=2))


def test_unknown_session(seeded, t0):
    with pytest.raises(NotFoundError):
        seeded.sessions.get("missing")
    with pytest.raises(NotFoundError):
        seeded.sessions.end("missing", t0)


def test_invalid_input(seeded, t0):
    with pytest.raises(ValidationError):
        seeded.sessions.start("", "flashcard", t0)
    with pytest.raises(InvalidItemKind):
        seeded.sessions.start("alice", "essay", t0)
    with pytest.raises(ValidationError):
        seeded.sessions.start("alice", "flashcard", datetime(2026, 1, 5))
