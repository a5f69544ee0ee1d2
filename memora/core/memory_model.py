"""
Memory Model - FSRS-4 spaced repetition scheduling.

Pure computation, no database calls and no clock reads:
given a card's memory state, a grade and the review time, produce the
next memory state (stability, difficulty, due date, interval).

Forgetting curve (FSRS-4 power form):
    R(t, S) = (1 + t / (9·S))^-1

So stability S is the number of days after which recall probability
drops to 90%.

Grade scale:
1 - Again (forgot)
2 - Hard
3 - Good
4 - Easy
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import IntEnum
from typing import Protocol

# =============================================================================
# FSRS-4 CONSTANTS
# =============================================================================

DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.4,    # w0: initial stability for Again
    0.6,    # w1: initial stability for Hard
    2.4,    # w2: initial stability for Good
    5.8,    # w3: initial stability for Easy
    4.93,   # w4: initial difficulty for Good
    0.94,   # w5: initial difficulty slope per grade
    0.86,   # w6: difficulty change per grade
    0.01,   # w7: mean reversion towards initial difficulty
    1.49,   # w8: recall stability growth (exp)
    0.14,   # w9: stability saturation
    0.94,   # w10: retrievability gain
    2.18,   # w11: forgetting stability scale
    0.05,   # w12: forgetting difficulty exponent
    0.34,   # w13: forgetting stability exponent
    1.26,   # w14: forgetting retrievability gain
    0.29,   # w15: hard penalty
    2.61,   # w16: easy bonus
)

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
MIN_STABILITY = 0.1
SECONDS_PER_DAY = 86400.0


class Grade(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class LifecycleState(IntEnum):
    """Discrete phase of a card's memory."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3

    @property
    def due_priority(self) -> int:
        """Tie-break rank in the due queue (lower surfaces first)."""
        return {
            LifecycleState.RELEARNING: 0,
            LifecycleState.LEARNING: 1,
            LifecycleState.REVIEW: 2,
            LifecycleState.NEW: 3,
        }[self]

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class SchedulerParameters:
    """Process-wide FSRS configuration. Never mutated after construction."""

    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    desired_retention: float = 0.9
    maximum_interval: int = 36500  # 100 years

    def __post_init__(self):
        if len(self.weights) != 17:
            raise ValueError(f"FSRS needs 17 weights, got {len(self.weights)}")
        if self.weights[0] <= 0:
            raise ValueError("w0 (initial stability for Again) must be positive")
        if not 0 < self.desired_retention < 1:
            raise ValueError("desired_retention must be in (0, 1)")
        if self.maximum_interval < 1:
            raise ValueError("maximum_interval must be at least 1 day")


@dataclass
class MemoryState:
    """Memory state of one card for one student."""

    due_at: datetime | None = None
    stability: float = 0.0
    difficulty: float = 0.0
    elapsed_days: float = 0.0
    scheduled_days: int = 0
    repetition_count: int = 0
    lapse_count: int = 0
    lifecycle_state: LifecycleState = LifecycleState.NEW
    last_review_at: datetime | None = None

    @property
    def is_new(self) -> bool:
        return self.lifecycle_state == LifecycleState.NEW


class GradedReview(Protocol):
    """Anything carrying a grade and a review time (e.g. a review log entry)."""

    grade: int
    reviewed_at: datetime


# =============================================================================
# Time helpers
# =============================================================================


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def calculate_days_since(last_review: datetime | None, now: datetime) -> float:
    """
    Calculate days elapsed since a review.

    Args:
        last_review: Timestamp of last review (can be naive or aware)
        now: Review time

    Returns:
        Days elapsed as float, 0 if never reviewed or if now precedes it
    """
    if last_review is None:
        return 0.0
    delta = as_utc(now) - as_utc(last_review)
    return max(0.0, delta.total_seconds() / SECONDS_PER_DAY)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# =============================================================================
# Scheduler
# =============================================================================


@dataclass
class MemoryModel:
    """
    FSRS-4 scheduler.

    All methods are pure: the same (state, grade, now) always produces
    the same next state.
    """

    params: SchedulerParameters = field(default_factory=SchedulerParameters)

    @property
    def w(self) -> tuple[float, ...]:
        return self.params.weights

    def review(self, state: MemoryState, grade: int, now: datetime) -> MemoryState:
        """
        Process a review and return the new memory state.

        Args:
            state: Current memory state (not modified)
            grade: 1-4 (Again, Hard, Good, Easy)
            now: Review time

        Returns:
            Next MemoryState
        """
        grade = Grade(grade)
        now = as_utc(now)
        elapsed = calculate_days_since(state.last_review_at, now)

        if state.lifecycle_state == LifecycleState.NEW:
            difficulty = self._initial_difficulty(grade)
            stability = max(self.w[grade - 1], MIN_STABILITY)
            lifecycle = LifecycleState.RELEARNING if grade == Grade.AGAIN else LifecycleState.REVIEW
        else:
            r = self.retrievability_at(state.stability, elapsed)
            difficulty = self._next_difficulty(state.difficulty, grade)
            if grade == Grade.AGAIN:
                stability = self._next_forget_stability(difficulty, state.stability, r)
                lifecycle = (
                    LifecycleState.RELEARNING
                    if state.lifecycle_state == LifecycleState.REVIEW
                    else LifecycleState.LEARNING
                )
            else:
                stability = self._next_recall_stability(difficulty, state.stability, r, grade)
                lifecycle = LifecycleState.REVIEW

        if state.lifecycle_state == LifecycleState.NEW and grade == Grade.AGAIN:
            interval = 0
        else:
            interval = self.next_interval(stability)

        return MemoryState(
            due_at=now + timedelta(days=interval),
            stability=stability,
            difficulty=difficulty,
            elapsed_days=elapsed,
            scheduled_days=interval,
            repetition_count=state.repetition_count + 1,
            lapse_count=state.lapse_count + (1 if grade == Grade.AGAIN else 0),
            lifecycle_state=lifecycle,
            last_review_at=now,
        )

    def preview(self, state: MemoryState, now: datetime) -> dict[Grade, MemoryState]:
        """Next state for every possible grade, for interval labels on buttons."""
        return {grade: self.review(state, grade, now) for grade in Grade}

    def replay(self, reviews: Iterable[GradedReview]) -> MemoryState:
        """Fold a review history, oldest first, starting from a New card."""
        state = MemoryState()
        for entry in reviews:
            state = self.review(state, entry.grade, entry.reviewed_at)
        return state

    def retrievability(self, state: MemoryState, now: datetime) -> float:
        """Current recall probability for a stored state."""
        if state.lifecycle_state == LifecycleState.NEW:
            return 0.0
        return self.retrievability_at(
            state.stability, calculate_days_since(state.last_review_at, now)
        )

    @staticmethod
    def retrievability_at(stability: float, elapsed_days: float) -> float:
        """R = (1 + t/(9S))^-1, 0 when stability is not positive."""
        if stability <= 0:
            return 0.0
        return _clamp(1.0 / (1.0 + max(0.0, elapsed_days) / (9.0 * stability)), 0.0, 1.0)

    def next_interval(self, stability: float) -> int:
        """Scheduled days: round((S / w0) * (R*^(1/w0) - 1)), clamped to [1, maximum_interval]."""
        w0 = self.w[0]
        interval = (stability / w0) * (math.pow(self.params.desired_retention, 1.0 / w0) - 1.0)
        return int(_clamp(round(interval), 1, self.params.maximum_interval))

    def _initial_difficulty(self, grade: int) -> float:
        return _clamp(self.w[4] - (grade - 3) * self.w[5], MIN_DIFFICULTY, MAX_DIFFICULTY)

    def _next_difficulty(self, d: float, grade: int) -> float:
        """Difficulty moves against the grade, reverting towards D0(Good)."""
        d0 = self._initial_difficulty(Grade.GOOD)
        new_d = self.w[7] * d0 + (1 - self.w[7]) * (d - self.w[6] * (grade - 3))
        return _clamp(new_d, MIN_DIFFICULTY, MAX_DIFFICULTY)

    def _next_recall_stability(self, d: float, s: float, r: float, grade: int) -> float:
        """Calculate new stability after successful recall."""
        s = max(s, MIN_STABILITY)
        hard_penalty = self.w[15] if grade == Grade.HARD else 1.0
        easy_bonus = self.w[16] if grade == Grade.EASY else 1.0

        new_s = s * (
            1
            + math.exp(self.w[8])
            * (11 - d)
            * math.pow(s, -self.w[9])
            * (math.exp((1 - r) * self.w[10]) - 1)
            * hard_penalty
            * easy_bonus
        )
        return max(MIN_STABILITY, new_s)

    def _next_forget_stability(self, d: float, s: float, r: float) -> float:
        """Calculate new stability after forgetting."""
        s = max(s, MIN_STABILITY)
        new_s = (
            self.w[11]
            * math.pow(d, -self.w[12])
            * (math.pow(s + 1, self.w[13]) - 1)
            * math.exp((1 - r) * self.w[14])
        )
        return max(MIN_STABILITY, new_s)
