"""
Review state models.

Tables carrying the review core's key space:
- memory_states   (student_id, item_id)        memory:{studentId}:{cardId}
- mastery_states  (student_id, unit_id)        mastery:{studentId}:{unitId}
- review_logs     (id)                         reviewlog:{reviewId}
- daily_activity  (student_id, activity_date)  dailyActivity:{studentId}:{date}

State rows carry a `version` column used for optimistic concurrency: an
UPDATE only succeeds when the row still has the version that was read.
"""
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from memora.core.mastery import MasteryColor, MasteryState
from memora.core.memory_model import LifecycleState, MemoryState, as_utc
from memora.core.review_log import ReviewLogEntry

from .base import Base


def _utc_or_none(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None


class MemoryStateRecord(Base):
    """FSRS memory state per student per item."""

    __tablename__ = "memory_states"

    student_id: Mapped[str] = mapped_column(Text, primary_key=True)
    item_id: Mapped[str] = mapped_column(
        ForeignKey("items.id", ondelete="CASCADE"), primary_key=True
    )
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    stability: Mapped[float] = mapped_column(Float, default=0.0)
    difficulty: Mapped[float] = mapped_column(Float, default=0.0)
    elapsed_days: Mapped[float] = mapped_column(Float, default=0.0)
    scheduled_days: Mapped[int] = mapped_column(Integer, default=0)
    repetition_count: Mapped[int] = mapped_column(Integer, default=0)
    lapse_count: Mapped[int] = mapped_column(Integer, default=0)
    lifecycle_state: Mapped[int] = mapped_column(Integer, default=int(LifecycleState.NEW))
    last_review_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (Index("idx_memory_states_due", "student_id", "due_at"),)

    def __repr__(self) -> str:
        return (
            f"<MemoryStateRecord student={self.student_id} item={self.item_id} "
            f"due={self.due_at} state={self.lifecycle_state}>"
        )

    def to_state(self) -> MemoryState:
        return MemoryState(
            due_at=_utc_or_none(self.due_at),
            stability=self.stability,
            difficulty=self.difficulty,
            elapsed_days=self.elapsed_days,
            scheduled_days=self.scheduled_days,
            repetition_count=self.repetition_count,
            lapse_count=self.lapse_count,
            lifecycle_state=LifecycleState(self.lifecycle_state),
            last_review_at=_utc_or_none(self.last_review_at),
        )

    def apply(self, state: MemoryState) -> None:
        self.due_at = state.due_at
        self.stability = state.stability
        self.difficulty = state.difficulty
        self.elapsed_days = state.elapsed_days
        self.scheduled_days = state.scheduled_days
        self.repetition_count = state.repetition_count
        self.lapse_count = state.lapse_count
        self.lifecycle_state = int(state.lifecycle_state)
        self.last_review_at = state.last_review_at


class MasteryStateRecord(Base):
    """BKT mastery state per student per knowledge unit."""

    __tablename__ = "mastery_states"

    student_id: Mapped[str] = mapped_column(Text, primary_key=True)
    unit_id: Mapped[str] = mapped_column(
        ForeignKey("knowledge_units.id", ondelete="CASCADE"), primary_key=True
    )
    p_know: Mapped[float] = mapped_column(Float, default=0.0)
    p_slip: Mapped[float] = mapped_column(Float, nullable=False)
    p_guess: Mapped[float] = mapped_column(Float, nullable=False)
    p_transit: Mapped[float] = mapped_column(Float, nullable=False)
    stability: Mapped[float] = mapped_column(Float, default=0.0)
    delta: Mapped[float] = mapped_column(Float, default=0.0)
    color: Mapped[str] = mapped_column(Text, default=MasteryColor.RED.value)
    last_review_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<MasteryStateRecord student={self.student_id} unit={self.unit_id} "
            f"p_know={self.p_know:.3f} color={self.color}>"
        )

    def to_state(self) -> MasteryState:
        return MasteryState(
            p_know=self.p_know,
            p_slip=self.p_slip,
            p_guess=self.p_guess,
            p_transit=self.p_transit,
            stability=self.stability,
            delta=self.delta,
            color=MasteryColor(self.color),
            last_review_at=_utc_or_none(self.last_review_at),
            review_count=self.review_count,
        )

    def apply(self, state: MasteryState) -> None:
        self.p_know = state.p_know
        self.p_slip = state.p_slip
        self.p_guess = state.p_guess
        self.p_transit = state.p_transit
        self.stability = state.stability
        self.delta = state.delta
        self.color = state.color.value
        self.last_review_at = state.last_review_at
        self.review_count = state.review_count


class ReviewLogRecord(Base):
    """Append-only review log. Rows are never updated."""

    __tablename__ = "review_logs"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    student_id: Mapped[str] = mapped_column(Text, nullable=False)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("study_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[str] = mapped_column(Text, nullable=False)
    item_kind: Mapped[str] = mapped_column(Text, nullable=False)
    knowledge_unit_id: Mapped[str | None] = mapped_column(Text)
    grade: Mapped[int] = mapped_column(Integer, nullable=False)
    correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    response_time_ms: Mapped[int | None] = mapped_column(Integer)

    lifecycle_before: Mapped[int] = mapped_column(Integer, nullable=False)
    due_before: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    stability_before: Mapped[float] = mapped_column(Float, nullable=False)
    difficulty_before: Mapped[float] = mapped_column(Float, nullable=False)
    elapsed_days: Mapped[float] = mapped_column(Float, nullable=False)

    lifecycle_after: Mapped[int] = mapped_column(Integer, nullable=False)
    due_after: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    stability_after: Mapped[float] = mapped_column(Float, nullable=False)
    difficulty_after: Mapped[float] = mapped_column(Float, nullable=False)
    scheduled_days: Mapped[int] = mapped_column(Integer, nullable=False)

    p_know_before: Mapped[float | None] = mapped_column(Float)
    p_know_after: Mapped[float | None] = mapped_column(Float)
    color_before: Mapped[str | None] = mapped_column(Text)
    color_after: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        Index("idx_review_logs_student_time", "student_id", "reviewed_at"),
        Index("idx_review_logs_item", "student_id", "item_id", "reviewed_at"),
    )

    def __repr__(self) -> str:
        return f"<ReviewLogRecord {self.id} item={self.item_id} grade={self.grade}>"

    @classmethod
    def from_entry(cls, entry: ReviewLogEntry) -> ReviewLogRecord:
        return cls(
            id=entry.review_id,
            student_id=entry.student_id,
            session_id=entry.session_id,
            item_id=entry.item_id,
            item_kind=entry.item_kind,
            knowledge_unit_id=entry.knowledge_unit_id,
            grade=entry.grade,
            correct=entry.correct,
            reviewed_at=entry.reviewed_at,
            response_time_ms=entry.response_time_ms,
            lifecycle_before=int(entry.lifecycle_before),
            due_before=entry.due_before,
            stability_before=entry.stability_before,
            difficulty_before=entry.difficulty_before,
            elapsed_days=entry.elapsed_days,
            lifecycle_after=int(entry.lifecycle_after),
            due_after=entry.due_after,
            stability_after=entry.stability_after,
            difficulty_after=entry.difficulty_after,
            scheduled_days=entry.scheduled_days,
            p_know_before=entry.p_know_before,
            p_know_after=entry.p_know_after,
            color_before=entry.color_before.value if entry.color_before else None,
            color_after=entry.color_after.value if entry.color_after else None,
        )

    def to_entry(self) -> ReviewLogEntry:
        return ReviewLogEntry(
            review_id=self.id,
            student_id=self.student_id,
            session_id=self.session_id,
            item_id=self.item_id,
            item_kind=self.item_kind,
            grade=self.grade,
            correct=self.correct,
            reviewed_at=as_utc(self.reviewed_at),
            lifecycle_before=LifecycleState(self.lifecycle_before),
            due_before=_utc_or_none(self.due_before),
            stability_before=self.stability_before,
            difficulty_before=self.difficulty_before,
            elapsed_days=self.elapsed_days,
            lifecycle_after=LifecycleState(self.lifecycle_after),
            due_after=as_utc(self.due_after),
            stability_after=self.stability_after,
            difficulty_after=self.difficulty_after,
            scheduled_days=self.scheduled_days,
            knowledge_unit_id=self.knowledge_unit_id,
            p_know_before=self.p_know_before,
            p_know_after=self.p_know_after,
            color_before=MasteryColor(self.color_before) if self.color_before else None,
            color_after=MasteryColor(self.color_after) if self.color_after else None,
            response_time_ms=self.response_time_ms,
        )


class DailyActivity(Base):
    """Per-day review counters, incremented in the review transaction."""

    __tablename__ = "daily_activity"

    student_id: Mapped[str] = mapped_column(Text, primary_key=True)
    activity_date: Mapped[date] = mapped_column(Date, primary_key=True)
    reviews_count: Mapped[int] = mapped_column(Integer, default=0)
    correct_count: Mapped[int] = mapped_column(Integer, default=0)
    new_cards_seen: Mapped[int] = mapped_column(Integer, default=0)
    time_spent_ms: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<DailyActivity {self.student_id} {self.activity_date} reviews={self.reviews_count}>"

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "date": self.activity_date.isoformat(),
            "reviews_count": self.reviews_count,
            "correct_count": self.correct_count,
            "new_cards_seen": self.new_cards_seen,
            "time_spent_ms": self.time_spent_ms,
        }
