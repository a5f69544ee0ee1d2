"""Read-only snapshots of persisted memory and mastery state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from memora.core.errors import NotFoundError, PersistenceError
from memora.core.mastery import MasteryModel, MasteryState
from memora.core.memory_model import MemoryModel, MemoryState
from memora.core.review_log import ReviewLogEntry
from memora.db.database import Database
from memora.db.models import MasteryStateRecord, MemoryStateRecord, ReviewLogRecord


@dataclass
class MemorySnapshot:
    student_id: str
    item_id: str
    state: MemoryState
    retrievability: float


@dataclass
class MasterySnapshot:
    student_id: str
    unit_id: str
    state: MasteryState
    display_mastery: float


class StateQueries:
    def __init__(self, db: Database, memory_model: MemoryModel, mastery_model: MasteryModel):
        self.db = db
        self.memory_model = memory_model
        self.mastery_model = mastery_model

    def memory(self, student_id: str, item_id: str, now: datetime) -> MemorySnapshot:
        try:
            with self.db.read_scope() as session:
                record = session.get(MemoryStateRecord, (student_id, item_id))
                state = record.to_state() if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read memory state: {e}") from e
        if state is None:
            raise NotFoundError("Memory state", f"{student_id}:{item_id}")
        return MemorySnapshot(
            student_id=student_id,
            item_id=item_id,
            state=state,
            retrievability=self.memory_model.retrievability(state, now),
        )

    def mastery(self, student_id: str, unit_id: str, now: datetime) -> MasterySnapshot:
        try:
            with self.db.read_scope() as session:
                record = session.get(MasteryStateRecord, (student_id, unit_id))
                state = record.to_state() if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read mastery state: {e}") from e
        if state is None:
            raise NotFoundError("Mastery state", f"{student_id}:{unit_id}")
        return MasterySnapshot(
            student_id=student_id,
            unit_id=unit_id,
            state=state,
            display_mastery=self.mastery_model.display_mastery(state, now),
        )

    def all_mastery(self, student_id: str, now: datetime) -> list[MasterySnapshot]:
        stmt = (
            select(MasteryStateRecord)
            .where(MasteryStateRecord.student_id == student_id)
            .order_by(MasteryStateRecord.unit_id)
        )
        try:
            with self.db.read_scope() as session:
                rows = [(r.unit_id, r.to_state()) for r in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read mastery states: {e}") from e
        return [
            MasterySnapshot(
                student_id=student_id,
                unit_id=unit_id,
                state=state,
                display_mastery=self.mastery_model.display_mastery(state, now),
            )
            for unit_id, state in rows
        ]

    def item_history(self, student_id: str, item_id: str) -> list[ReviewLogEntry]:
        """Review log of one card for one student, oldest first."""
        stmt = (
            select(ReviewLogRecord)
            .where(ReviewLogRecord.student_id == student_id, ReviewLogRecord.item_id == item_id)
            .order_by(ReviewLogRecord.reviewed_at, ReviewLogRecord.id)
        )
        try:
            with self.db.read_scope() as session:
                return [record.to_entry() for record in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read review history: {e}") from e

    def replay_memory(self, student_id: str, item_id: str) -> MemoryState:
        """Rebuild a card's memory state from its review log."""
        return self.memory_model.replay(self.item_history(student_id, item_id))
