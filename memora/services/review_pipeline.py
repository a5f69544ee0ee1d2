"""
Review Pipeline - the single mutating entry point.

Cascade per graded review:
  1. Validate input (grade, item kind, latency, timestamp)
  2. Resolve session (student) and item (kind, knowledge unit)
  3. Lock session:{id}, memory:{student}:{item} and mastery:{student}:{unit}
  4. Read memory state (or start a New card)
  5. FSRS review -> next memory state
  6. Read mastery state (or seed it) and apply the BKT update
  7. Build the review log entry
  8. Persist states + log + daily counters in one transaction
  9. Return the new states and the color transition

Lost updates (version mismatch, duplicate insert) are retried a bounded
number of times before surfacing as ConcurrencyConflict. The session is
re-checked inside the write transaction so a review never lands in a
session that ended after it was resolved.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from memora.core.errors import (
    ConcurrencyConflict,
    InvalidGrade,
    InvalidItemKind,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from memora.core.mastery import MasteryColor, MasteryModel, MasteryState
from memora.core.memory_model import LifecycleState, MemoryModel, MemoryState, as_utc
from memora.core.review_log import ItemKind, ReviewLogBuilder, ReviewLogEntry
from memora.db.database import Database, is_foreign_key_violation, is_unique_violation
from memora.db.locks import KeyedLock, mastery_key, memory_key, session_key
from memora.db.models import (
    DailyActivity,
    Item,
    KnowledgeUnit,
    MasteryStateRecord,
    MemoryStateRecord,
    ReviewLogRecord,
    StudySession,
)
from memora.services.content import parse_item_kind

VALID_GRADES = (1, 2, 3, 4)  # Again=1, Hard=2, Good=3, Easy=4


# ========================================
# Request/Response types
# ========================================


@dataclass
class ReviewRequest:
    session_id: str
    item_id: str
    item_kind: str
    grade: int
    response_time_ms: int | None = None


@dataclass
class MemoryUpdate:
    due_at: datetime
    stability: float
    difficulty: float
    lifecycle_state: LifecycleState
    repetition_count: int
    lapse_count: int
    scheduled_days: int

    @classmethod
    def from_state(cls, state: MemoryState) -> MemoryUpdate:
        return cls(
            due_at=state.due_at,
            stability=state.stability,
            difficulty=state.difficulty,
            lifecycle_state=state.lifecycle_state,
            repetition_count=state.repetition_count,
            lapse_count=state.lapse_count,
            scheduled_days=state.scheduled_days,
        )


@dataclass
class MasteryUpdate:
    unit_id: str
    p_know: float
    color: MasteryColor
    delta: float


@dataclass
class ReviewResponse:
    review_id: str
    memory_update: MemoryUpdate
    mastery_update: MasteryUpdate | None
    color_before: MasteryColor | None
    color_after: MasteryColor | None
    log_entry: ReviewLogEntry


@dataclass
class _ReviewContext:
    student_id: str
    session_id: str
    item_id: str
    item_kind: ItemKind
    unit: KnowledgeUnit | None


class _MissingReference(Exception):
    """A row referenced by the review was deleted after it was resolved."""


def validate_grade(grade: object) -> int:
    # bool is an int subclass; True must not pass as grade 1
    if isinstance(grade, bool) or not isinstance(grade, int) or grade not in VALID_GRADES:
        raise InvalidGrade(
            f"Invalid grade value: {grade!r}. Must be one of: "
            f"{', '.join(str(g) for g in VALID_GRADES)}"
        )
    return grade


# ========================================
# Pipeline
# ========================================


class ReviewPipeline:
    """Sole writer of memory and mastery state."""

    def __init__(
        self,
        db: Database,
        memory_model: MemoryModel,
        mastery_model: MasteryModel,
        *,
        locks: KeyedLock | None = None,
        log_builder: ReviewLogBuilder | None = None,
        max_retries: int = 3,
    ):
        self.db = db
        self.memory_model = memory_model
        self.mastery_model = mastery_model
        self.locks = locks or KeyedLock()
        self.log_builder = log_builder or ReviewLogBuilder()
        self.max_retries = max_retries

    def handle_review(self, request: ReviewRequest, now: datetime | None = None) -> ReviewResponse:
        """
        Grade one item and update both models atomically.

        Raises:
            InvalidGrade / InvalidItemKind / ValidationError: bad input
            NotFoundError: unknown session or item
            ConcurrencyConflict: lost update persisted after all retries
            PersistenceError: storage failure
        """
        grade = validate_grade(request.grade)
        kind = parse_item_kind(request.item_kind)
        if request.response_time_ms is not None and request.response_time_ms < 0:
            raise ValidationError("response_time_ms must not be negative")
        if now is None:
            now = datetime.now(UTC)
        elif now.tzinfo is None:
            raise ValidationError("Review timestamp must be timezone-aware")
        now = as_utc(now)

        context = self._resolve(request, kind)

        keys = [session_key(context.session_id), memory_key(context.student_id, context.item_id)]
        if context.unit is not None:
            keys.append(mastery_key(context.student_id, context.unit.id))

        with self.locks.hold(*keys):
            attempt = 0
            while True:
                try:
                    response = self._apply(context, grade, request.response_time_ms, now)
                    break
                except _MissingReference:
                    # raises the precise NotFoundError for a vanished session or item
                    self._resolve(request, kind)
                    raise NotFoundError(
                        "KnowledgeUnit", context.unit.id if context.unit else request.item_id
                    ) from None
                except ConcurrencyConflict:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.error(
                            f"[Reviews] Giving up on {context.item_id} for "
                            f"{context.student_id} after {self.max_retries} retries"
                        )
                        raise
                    logger.warning(
                        f"[Reviews] Lost update on {context.item_id}, retry {attempt}/{self.max_retries}"
                    )

        mastery = response.mastery_update
        logger.info(
            f"[Reviews] {kind.value} review for {context.item_id} by {context.student_id}: "
            f"grade={grade}, state={response.memory_update.lifecycle_state.label}, "
            f"interval={response.memory_update.scheduled_days}d"
            + (f", p_know={mastery.p_know:.3f}, color={mastery.color.value}" if mastery else "")
        )
        return response

    def _resolve(self, request: ReviewRequest, kind: ItemKind) -> _ReviewContext:
        """Look up the session's student and the item. Read-only."""
        try:
            with self.db.read_scope() as session:
                study_session = session.get(StudySession, request.session_id)
                if study_session is None:
                    raise NotFoundError("Session", request.session_id)
                if study_session.ended_at is not None:
                    raise ValidationError(f"Session {request.session_id} has already ended")

                item = session.get(Item, request.item_id)
                if item is None:
                    raise NotFoundError("Item", request.item_id)
                if item.kind != kind.value:
                    raise InvalidItemKind(
                        f"Item {item.id} is a {item.kind}, not a {kind.value}"
                    )

                unit = None
                if item.knowledge_unit_id:
                    unit = session.get(KnowledgeUnit, item.knowledge_unit_id)
                    if unit is not None:
                        session.expunge(unit)

                return _ReviewContext(
                    student_id=study_session.student_id,
                    session_id=study_session.id,
                    item_id=item.id,
                    item_kind=kind,
                    unit=unit,
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load review context: {e}") from e

    def _apply(
        self,
        context: _ReviewContext,
        grade: int,
        response_time_ms: int | None,
        now: datetime,
    ) -> ReviewResponse:
        """One read-modify-write cycle in a single transaction."""
        try:
            with self.db.session_scope() as session:
                study_session = session.get(
                    StudySession, context.session_id, with_for_update=True
                )
                if study_session is None:
                    raise NotFoundError("Session", context.session_id)
                if study_session.ended_at is not None:
                    raise ValidationError(f"Session {context.session_id} has already ended")

                # ── Memory (FSRS) ───────────────────────────────
                memory_record = session.get(
                    MemoryStateRecord, (context.student_id, context.item_id)
                )
                memory_before = memory_record.to_state() if memory_record else MemoryState()
                memory_after = self.memory_model.review(memory_before, grade, now)
                if memory_record is None:
                    memory_record = MemoryStateRecord(
                        student_id=context.student_id, item_id=context.item_id
                    )
                    session.add(memory_record)
                memory_record.apply(memory_after)

                # ── Mastery (BKT) ───────────────────────────────
                correct = self.mastery_model.is_correct(grade)
                mastery_before: MasteryState | None = None
                mastery_after: MasteryState | None = None
                if context.unit is not None:
                    mastery_before, mastery_after = self._update_mastery(
                        session, context, correct, now, memory_after
                    )

                # ── Log + counters ──────────────────────────────
                entry = self.log_builder.build(
                    student_id=context.student_id,
                    session_id=context.session_id,
                    item_id=context.item_id,
                    item_kind=context.item_kind.value,
                    grade=grade,
                    correct=correct,
                    reviewed_at=now,
                    memory_before=memory_before,
                    memory_after=memory_after,
                    knowledge_unit_id=context.unit.id if context.unit else None,
                    mastery_before=mastery_before,
                    mastery_after=mastery_after,
                    response_time_ms=response_time_ms,
                )
                session.add(ReviewLogRecord.from_entry(entry))
                session.flush()
                self._bump_daily_activity(session, entry, memory_before.is_new)
        except StaleDataError as e:
            raise ConcurrencyConflict(
                f"Concurrent review of {context.item_id} for {context.student_id}"
            ) from e
        except IntegrityError as e:
            if is_unique_violation(e):
                raise ConcurrencyConflict(
                    f"Concurrent review of {context.item_id} for {context.student_id}"
                ) from e
            if is_foreign_key_violation(e):
                raise _MissingReference(str(e.orig)) from e
            raise PersistenceError(f"Could not persist review: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not persist review: {e}") from e

        mastery_update = None
        if mastery_after is not None:
            mastery_update = MasteryUpdate(
                unit_id=context.unit.id,
                p_know=mastery_after.p_know,
                color=mastery_after.color,
                delta=mastery_after.delta,
            )
        return ReviewResponse(
            review_id=entry.review_id,
            memory_update=MemoryUpdate.from_state(memory_after),
            mastery_update=mastery_update,
            color_before=mastery_before.color if mastery_before else None,
            color_after=mastery_after.color if mastery_after else None,
            log_entry=entry,
        )

    def _update_mastery(
        self,
        session: Session,
        context: _ReviewContext,
        correct: bool,
        now: datetime,
        memory_after: MemoryState,
    ) -> tuple[MasteryState, MasteryState]:
        unit = context.unit
        record = session.get(MasteryStateRecord, (context.student_id, unit.id))
        if record is None:
            before = self.mastery_model.initial_state(
                p_init=unit.p_init,
                p_slip=unit.p_slip,
                p_guess=unit.p_guess,
                p_transit=unit.p_transit,
            )
            record = MasteryStateRecord(student_id=context.student_id, unit_id=unit.id)
            session.add(record)
        else:
            before = record.to_state()

        # Only flashcards carry an FSRS stability worth tracking on the unit
        stability = memory_after.stability if context.item_kind == ItemKind.FLASHCARD else None
        after = self.mastery_model.update(before, correct, now, stability=stability)
        record.apply(after)
        return before, after

    @staticmethod
    def _bump_daily_activity(session: Session, entry: ReviewLogEntry, was_new: bool) -> None:
        """Atomic in-database increment so different items never contend on a read."""
        day = entry.reviewed_at.date()
        correct = 1 if entry.correct else 0
        new_card = 1 if was_new else 0
        spent = entry.response_time_ms or 0

        result = session.execute(
            update(DailyActivity)
            .where(
                DailyActivity.student_id == entry.student_id,
                DailyActivity.activity_date == day,
            )
            .values(
                reviews_count=DailyActivity.reviews_count + 1,
                correct_count=DailyActivity.correct_count + correct,
                new_cards_seen=DailyActivity.new_cards_seen + new_card,
                time_spent_ms=DailyActivity.time_spent_ms + spent,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            session.add(
                DailyActivity(
                    student_id=entry.student_id,
                    activity_date=day,
                    reviews_count=1,
                    correct_count=correct,
                    new_cards_seen=new_card,
                    time_spent_ms=spent,
                )
            )
            session.flush()
