"""
Core Mastery Module - Bayesian Knowledge Tracing.

Tracks the probability that a learner has internalized a knowledge unit
from a stream of correct/incorrect observations.

Standard 4-parameter BKT:
    P(L0)  - prior probability of mastery (p_init)
    P(S)   - slip: wrong answer despite mastery
    P(G)   - guess: right answer despite non-mastery
    P(T)   - transit: learning on one practice opportunity

Update on an observation:
    correct:   P(L|obs) = P(L)(1-S) / [P(L)(1-S) + (1-P(L))G]
    incorrect: P(L|obs) = P(L)S / [P(L)S + (1-P(L))(1-G)]
    then:      P(L')    = P(L|obs) + (1 - P(L|obs))T
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from memora.core.memory_model import MemoryModel, as_utc, calculate_days_since


class MasteryColor(str, Enum):
    """
    Discrete mastery bucket shown as a color badge.

    Ordered from weakest to strongest.
    """

    RED = "red"  # < 0.25
    ORANGE = "orange"  # 0.25 - 0.5
    YELLOW = "yellow"  # 0.5 - 0.75
    GREEN = "green"  # >= 0.75

    @classmethod
    def from_probability(
        cls,
        p_know: float,
        thresholds: tuple[float, float, float] = (0.25, 0.5, 0.75),
    ) -> MasteryColor:
        """
        Convert a 0-1 mastery probability to a color.

        Args:
            p_know: Probability of mastery
            thresholds: Lower bounds of orange, yellow and green

        Returns:
            Corresponding MasteryColor
        """
        orange, yellow, green = thresholds
        if p_know < orange:
            return cls.RED
        elif p_know < yellow:
            return cls.ORANGE
        elif p_know < green:
            return cls.YELLOW
        return cls.GREEN

    @property
    def rank(self) -> int:
        return list(MasteryColor).index(self)


@dataclass(frozen=True)
class MasteryParameters:
    """Default per-unit seeds and color thresholds. Read-only after startup."""

    p_init: float = 0.0
    p_slip: float = 0.1
    p_guess: float = 0.25
    p_transit: float = 0.1
    color_thresholds: tuple[float, float, float] = (0.25, 0.5, 0.75)
    correct_grade_threshold: int = 3

    def __post_init__(self):
        for name in ("p_init", "p_slip", "p_guess", "p_transit"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if any(not 0.0 <= t <= 1.0 for t in self.color_thresholds):
            raise ValueError(f"color_thresholds must be in [0, 1], got {self.color_thresholds}")


@dataclass
class MasteryState:
    """BKT state of one knowledge unit for one student."""

    p_know: float = 0.0
    p_slip: float = 0.1
    p_guess: float = 0.25
    p_transit: float = 0.1
    stability: float = 0.0
    delta: float = 0.0
    color: MasteryColor = MasteryColor.RED
    last_review_at: datetime | None = None
    review_count: int = 0


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass
class MasteryModel:
    """Pure BKT updater. Never reads the clock; `now` is always passed in."""

    params: MasteryParameters = field(default_factory=MasteryParameters)

    def initial_state(
        self,
        p_init: float | None = None,
        p_slip: float | None = None,
        p_guess: float | None = None,
        p_transit: float | None = None,
    ) -> MasteryState:
        """Seed a unit, falling back to the configured defaults."""
        p_know = _clamp01(self.params.p_init if p_init is None else p_init)
        return MasteryState(
            p_know=p_know,
            p_slip=_clamp01(self.params.p_slip if p_slip is None else p_slip),
            p_guess=_clamp01(self.params.p_guess if p_guess is None else p_guess),
            p_transit=_clamp01(self.params.p_transit if p_transit is None else p_transit),
            color=self.color_for(p_know),
        )

    def is_correct(self, grade: int) -> bool:
        return grade >= self.params.correct_grade_threshold

    def color_for(self, p_know: float) -> MasteryColor:
        return MasteryColor.from_probability(p_know, self.params.color_thresholds)

    @staticmethod
    def posterior(state: MasteryState, correct: bool) -> float:
        """P(L | observation). A zero evidence term keeps the prior."""
        p = _clamp01(state.p_know)
        if correct:
            numerator = p * (1 - state.p_slip)
            denominator = numerator + (1 - p) * state.p_guess
        else:
            numerator = p * state.p_slip
            denominator = numerator + (1 - p) * (1 - state.p_guess)
        if denominator <= 0:
            return p
        return _clamp01(numerator / denominator)

    def update(
        self,
        state: MasteryState,
        correct: bool,
        now: datetime,
        stability: float | None = None,
    ) -> MasteryState:
        """
        Apply one observation.

        Args:
            state: Current mastery state (not modified)
            correct: Whether the answer was correct
            now: Review time
            stability: Memory stability of the reviewed card, if any

        Returns:
            Next MasteryState
        """
        p_prior = _clamp01(state.p_know)
        p_posterior = self.posterior(state, correct)
        p_next = _clamp01(p_posterior + (1 - p_posterior) * state.p_transit)

        return replace(
            state,
            p_know=p_next,
            delta=p_next - p_prior,
            color=self.color_for(p_next),
            stability=state.stability if stability is None else max(0.0, stability),
            last_review_at=as_utc(now),
            review_count=state.review_count + 1,
        )

    @staticmethod
    def display_mastery(state: MasteryState, now: datetime) -> float:
        """
        Mastery decayed by time since the last review.

        displayMastery = p_know × R(days_since, stability). Not persisted.
        """
        if state.last_review_at is None or state.stability <= 0:
            return state.p_know
        days = calculate_days_since(state.last_review_at, now)
        return _clamp01(state.p_know * MemoryModel.retrievability_at(state.stability, days))
