"""
Due Queue - which flashcards a student should review now.

Ordering:
1. due_at ascending (most overdue first)
2. lifecycle priority: Relearning > Learning > Review > New
3. item id (stable output)
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, select
from sqlalchemy.exc import SQLAlchemyError

from memora.core.errors import PersistenceError, ValidationError
from memora.core.memory_model import SECONDS_PER_DAY, LifecycleState, as_utc
from memora.core.review_log import ItemKind
from memora.db.database import Database
from memora.db.models import Item, MemoryStateRecord

_PRIORITY = case(
    {int(state): state.due_priority for state in LifecycleState},
    value=MemoryStateRecord.lifecycle_state,
    else_=len(LifecycleState),
)


@dataclass(frozen=True)
class DueItem:
    """Read-model row for one due card."""

    card_id: str
    front: str
    back: str
    knowledge_unit_id: str | None
    due_at: datetime
    lifecycle_state: LifecycleState
    stability: float
    difficulty: float
    repetition_count: int
    lapse_count: int
    overdue_days: float


class DueSequence:
    """
    Lazy, finite, restartable view over a student's due cards.

    Nothing is queried until iteration starts; every new iteration queries
    again, so a second pass reflects reviews made in between.
    """

    def __init__(self, db: Database, student_id: str, now: datetime, limit: int):
        self._db = db
        self.student_id = student_id
        self.now = now
        self.limit = limit

    def _statement(self):
        return (
            select(MemoryStateRecord, Item)
            .join(Item, Item.id == MemoryStateRecord.item_id)
            .where(
                MemoryStateRecord.student_id == self.student_id,
                MemoryStateRecord.due_at.is_not(None),
                MemoryStateRecord.due_at <= self.now,
                Item.kind == ItemKind.FLASHCARD.value,
            )
            .order_by(MemoryStateRecord.due_at.asc(), _PRIORITY.asc(), MemoryStateRecord.item_id)
            .limit(self.limit)
        )

    def __iter__(self) -> Iterator[DueItem]:
        try:
            with self._db.read_scope() as session:
                for memory, item in session.execute(self._statement()):
                    due_at = as_utc(memory.due_at)
                    yield DueItem(
                        card_id=item.id,
                        front=item.front,
                        back=item.back,
                        knowledge_unit_id=item.knowledge_unit_id,
                        due_at=due_at,
                        lifecycle_state=LifecycleState(memory.lifecycle_state),
                        stability=memory.stability,
                        difficulty=memory.difficulty,
                        repetition_count=memory.repetition_count,
                        lapse_count=memory.lapse_count,
                        overdue_days=max(
                            0.0, (self.now - due_at).total_seconds() / SECONDS_PER_DAY
                        ),
                    )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read due cards: {e}") from e


class DueQueue:
    """Read-only access to due cards."""

    def __init__(self, db: Database):
        self.db = db

    def list_due(self, student_id: str, now: datetime, limit: int) -> DueSequence:
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        if now.tzinfo is None:
            raise ValidationError("now must be timezone-aware")
        return DueSequence(self.db, student_id, as_utc(now), limit)
