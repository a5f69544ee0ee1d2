"""
Session Aggregator - reporting roll-ups.

Everything in `summarize` is derived from review log entries only. Memory
and mastery state are never read here, so reporting cannot drift into
scheduling logic.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from memora.core.errors import PersistenceError, ValidationError
from memora.core.memory_model import as_utc
from memora.core.review_log import ReviewLogEntry
from memora.db.database import Database
from memora.db.models import DailyActivity, ReviewLogRecord

MAX_ACTIVITY_DAYS = 365


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end)."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValidationError("Window bounds must be timezone-aware")
        if self.end < self.start:
            raise ValidationError("Window end precedes its start")

    @classmethod
    def last_days(cls, days: int, now: datetime) -> TimeWindow:
        if days < 1:
            raise ValidationError("days must be at least 1")
        return cls(start=now - timedelta(days=days), end=now)


@dataclass
class DayStats:
    day: date
    reviews: int = 0
    correct: int = 0
    time_on_task_ms: int = 0


@dataclass
class SessionBreakdown:
    session_id: str
    reviews: int = 0
    correct: int = 0
    grade_total: int = 0
    time_on_task_ms: int = 0

    @property
    def avg_grade(self) -> float | None:
        return self.grade_total / self.reviews if self.reviews else None


@dataclass
class SessionStats:
    student_id: str
    window: TimeWindow
    total_reviews: int = 0
    correct: int = 0
    incorrect: int = 0
    time_on_task_ms: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    days: list[DayStats] = field(default_factory=list)
    sessions: list[SessionBreakdown] = field(default_factory=list)

    @property
    def accuracy(self) -> float | None:
        return self.correct / self.total_reviews if self.total_reviews else None


def _streaks(active_days: set[date], last_day: date) -> tuple[int, int]:
    """
    Current and longest run of consecutive active days.

    The current streak still counts when `last_day` itself has no activity
    yet but the day before does.
    """
    longest = 0
    for day in active_days:
        if day - timedelta(days=1) in active_days:
            continue
        length = 1
        while day + timedelta(days=length) in active_days:
            length += 1
        longest = max(longest, length)

    anchor = last_day if last_day in active_days else last_day - timedelta(days=1)
    current = 0
    while anchor - timedelta(days=current) in active_days:
        current += 1
    return current, longest


def aggregate(student_id: str, window: TimeWindow, entries: Iterable[ReviewLogEntry]) -> SessionStats:
    """Pure roll-up of log entries that fall inside the window."""
    stats = SessionStats(student_id=student_id, window=window)
    per_day: dict[date, DayStats] = {}
    per_session: dict[str, SessionBreakdown] = defaultdict(lambda: SessionBreakdown(session_id=""))

    for entry in entries:
        reviewed_at = as_utc(entry.reviewed_at)
        if entry.student_id != student_id or not window.start <= reviewed_at < window.end:
            continue
        spent = entry.response_time_ms or 0

        stats.total_reviews += 1
        stats.time_on_task_ms += spent
        if entry.correct:
            stats.correct += 1
        else:
            stats.incorrect += 1

        day = per_day.setdefault(reviewed_at.date(), DayStats(day=reviewed_at.date()))
        day.reviews += 1
        day.correct += int(entry.correct)
        day.time_on_task_ms += spent

        breakdown = per_session[entry.session_id]
        breakdown.session_id = entry.session_id
        breakdown.reviews += 1
        breakdown.correct += int(entry.correct)
        breakdown.grade_total += entry.grade
        breakdown.time_on_task_ms += spent

    stats.days = [per_day[d] for d in sorted(per_day)]
    stats.sessions = sorted(per_session.values(), key=lambda s: s.session_id)
    last_day = as_utc(window.end - timedelta(microseconds=1)).date()
    stats.current_streak, stats.longest_streak = _streaks(set(per_day), last_day)
    return stats


class SessionAggregator:
    """Read-only reporting over review logs and daily counters."""

    def __init__(self, db: Database):
        self.db = db

    def summarize(self, student_id: str, window: TimeWindow) -> SessionStats:
        stmt = (
            select(ReviewLogRecord)
            .where(
                ReviewLogRecord.student_id == student_id,
                ReviewLogRecord.reviewed_at >= as_utc(window.start),
                ReviewLogRecord.reviewed_at < as_utc(window.end),
            )
            .order_by(ReviewLogRecord.reviewed_at)
        )
        try:
            with self.db.read_scope() as session:
                entries = [record.to_entry() for record in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read review logs: {e}") from e
        return aggregate(student_id, window, entries)

    def daily_activity(self, student_id: str, start: date, end: date) -> list[dict]:
        """Counter rows for days in [start, end] that had activity (max 365 days)."""
        if end < start:
            raise ValidationError("end date precedes start date")
        end = min(end, start + timedelta(days=MAX_ACTIVITY_DAYS - 1))
        stmt = (
            select(DailyActivity)
            .where(
                DailyActivity.student_id == student_id,
                DailyActivity.activity_date >= start,
                DailyActivity.activity_date <= end,
            )
            .order_by(DailyActivity.activity_date)
        )
        try:
            with self.db.read_scope() as session:
                return [row.to_dict() for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read daily activity: {e}") from e
