"""
Review log records.

One immutable entry per graded review. Entries are the audit trail and the
input to `MemoryModel.replay` and the session aggregator.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from memora.core.mastery import MasteryColor, MasteryState
from memora.core.memory_model import LifecycleState, MemoryState, as_utc


class ItemKind(str, Enum):
    FLASHCARD = "flashcard"
    QUIZ = "quiz"


@dataclass(frozen=True)
class ReviewLogEntry:
    """A single review event with before/after snapshots."""

    review_id: str
    student_id: str
    session_id: str
    item_id: str
    item_kind: str
    grade: int
    correct: bool
    reviewed_at: datetime

    # Memory state before the review
    lifecycle_before: LifecycleState
    due_before: datetime | None
    stability_before: float
    difficulty_before: float
    elapsed_days: float

    # Memory state after the review
    lifecycle_after: LifecycleState
    due_after: datetime
    stability_after: float
    difficulty_after: float
    scheduled_days: int

    knowledge_unit_id: str | None = None
    p_know_before: float | None = None
    p_know_after: float | None = None
    color_before: MasteryColor | None = None
    color_after: MasteryColor | None = None
    response_time_ms: int | None = None


class ReviewLogBuilder:
    """Builds a ReviewLogEntry from the states on either side of a review."""

    def __init__(self, id_factory=None):
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    def build(
        self,
        *,
        student_id: str,
        session_id: str,
        item_id: str,
        item_kind: str,
        grade: int,
        correct: bool,
        reviewed_at: datetime,
        memory_before: MemoryState,
        memory_after: MemoryState,
        knowledge_unit_id: str | None = None,
        mastery_before: MasteryState | None = None,
        mastery_after: MasteryState | None = None,
        response_time_ms: int | None = None,
    ) -> ReviewLogEntry:
        has_mastery = mastery_before is not None and mastery_after is not None
        return ReviewLogEntry(
            review_id=self._id_factory(),
            student_id=student_id,
            session_id=session_id,
            item_id=item_id,
            item_kind=item_kind,
            grade=int(grade),
            correct=correct,
            reviewed_at=as_utc(reviewed_at),
            lifecycle_before=memory_before.lifecycle_state,
            due_before=memory_before.due_at,
            stability_before=memory_before.stability,
            difficulty_before=memory_before.difficulty,
            elapsed_days=memory_after.elapsed_days,
            lifecycle_after=memory_after.lifecycle_state,
            due_after=memory_after.due_at,
            stability_after=memory_after.stability,
            difficulty_after=memory_after.difficulty,
            scheduled_days=memory_after.scheduled_days,
            knowledge_unit_id=knowledge_unit_id if has_mastery else None,
            p_know_before=mastery_before.p_know if has_mastery else None,
            p_know_after=mastery_after.p_know if has_mastery else None,
            color_before=mastery_before.color if has_mastery else None,
            color_after=mastery_after.color if has_mastery else None,
            response_time_ms=response_time_ms,
        )
