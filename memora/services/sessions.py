"""
Study session management.

A session identifies the student behind each review. Its summary counters
are computed from its review logs when it ends.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from memora.core.errors import NotFoundError, PersistenceError, ValidationError
from memora.core.memory_model import as_utc
from memora.db.database import Database
from memora.db.locks import KeyedLock, session_key
from memora.db.models import ReviewLogRecord, StudySession
from memora.services.content import parse_item_kind


@dataclass
class SessionSummary:
    session_id: str
    student_id: str
    item_kind: str
    started_at: datetime
    ended_at: datetime | None
    items_reviewed: int
    avg_grade: float | None
    total_time_ms: int | None

    @classmethod
    def from_record(cls, record: StudySession) -> SessionSummary:
        return cls(
            session_id=record.id,
            student_id=record.student_id,
            item_kind=record.item_kind,
            started_at=as_utc(record.started_at),
            ended_at=as_utc(record.ended_at) if record.ended_at else None,
            items_reviewed=record.items_reviewed,
            avg_grade=record.avg_grade,
            total_time_ms=record.total_time_ms,
        )


def _require_aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        raise ValidationError("Timestamps must be timezone-aware")
    return as_utc(now)


class SessionService:
    """Start, inspect and end study sessions."""

    def __init__(self, db: Database, locks: KeyedLock | None = None):
        self.db = db
        self.locks = locks or KeyedLock()

    def start(self, student_id: str, item_kind: str, now: datetime) -> SessionSummary:
        if not student_id:
            raise ValidationError("student_id is required")
        kind = parse_item_kind(item_kind)
        now = _require_aware(now)

        record = StudySession(
            id=str(uuid.uuid4()),
            student_id=student_id,
            item_kind=kind.value,
            started_at=now,
            items_reviewed=0,
        )
        try:
            with self.db.session_scope() as session:
                session.add(record)
                summary = SessionSummary.from_record(record)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not create session: {e}") from e

        logger.info(f"Created session {summary.session_id} ({kind.value}) for {student_id}")
        return summary

    def get(self, session_id: str) -> SessionSummary:
        try:
            with self.db.read_scope() as session:
                record = session.get(StudySession, session_id)
                summary = SessionSummary.from_record(record) if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read session: {e}") from e
        if summary is None:
            raise NotFoundError("Session", session_id)
        return summary

    def end(self, session_id: str, now: datetime) -> SessionSummary:
        """Close a session and compute its aggregates from its review logs."""
        now = _require_aware(now)
        try:
            # waits for in-flight reviews of this session to commit
            with self.locks.hold(session_key(session_id)), self.db.session_scope() as session:
                record = session.get(StudySession, session_id, with_for_update=True)
                if record is None:
                    raise NotFoundError("Session", session_id)
                if record.ended_at is not None:
                    raise ValidationError("Session already ended")

                count, avg_grade = session.execute(
                    select(func.count(ReviewLogRecord.id), func.avg(ReviewLogRecord.grade)).where(
                        ReviewLogRecord.session_id == session_id
                    )
                ).one()

                started_at = as_utc(record.started_at)
                record.ended_at = now
                record.items_reviewed = count
                record.avg_grade = float(avg_grade) if avg_grade is not None else None
                record.total_time_ms = max(0, int((now - started_at).total_seconds() * 1000))
                summary = SessionSummary.from_record(record)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not end session: {e}") from e

        avg_label = f"{summary.avg_grade:.2f}" if summary.avg_grade is not None else "N/A"
        logger.info(
            f"Ended session {session_id}: {summary.items_reviewed} items, "
            f"avg_grade={avg_label}, {summary.total_time_ms}ms"
        )
        return summary
