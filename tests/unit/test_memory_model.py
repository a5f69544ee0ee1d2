"""
Unit tests for the FSRS memory model.

Pure computation only; no database.
"""

import math
import random
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from memora.core.memory_model import (
    DEFAULT_WEIGHTS,
    Grade,
    LifecycleState,
    MemoryModel,
    MemoryState,
    SchedulerParameters,
    calculate_days_since,
)

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)
W = DEFAULT_WEIGHTS


def review_card(stability=10.0, difficulty=5.0, last_review=T0):
    return MemoryState(
        due_at=last_review + timedelta(days=1),
        stability=stability,
        difficulty=difficulty,
        scheduled_days=1,
        repetition_count=3,
        lifecycle_state=LifecycleState.REVIEW,
        last_review_at=last_review,
    )


class TestFirstReview:
    def test_new_card_good(self, memory_model):
        state = memory_model.review(MemoryState(), Grade.GOOD, T0)

        assert state.difficulty == pytest.approx(W[4])
        assert state.stability == pytest.approx(W[2])
        assert state.lifecycle_state == LifecycleState.REVIEW
        expected = round((W[2] / W[0]) * (0.9 ** (1 / W[0]) - 1))
        assert state.scheduled_days == max(1, min(36500, expected))
        assert state.scheduled_days == 1
        assert state.due_at == T0 + timedelta(days=1)
        assert state.repetition_count == 1
        assert state.lapse_count == 0
        assert state.last_review_at == T0

    def test_new_card_again_is_due_immediately(self, memory_model):
        state = memory_model.review(MemoryState(), Grade.AGAIN, T0)

        assert state.lifecycle_state == LifecycleState.RELEARNING
        assert state.scheduled_days == 0
        assert state.due_at == T0
        assert state.lapse_count == 1
        assert state.stability == pytest.approx(W[0])
        assert state.difficulty == pytest.approx(W[4] + 2 * W[5])

    def test_new_card_hard_gets_at_least_one_day(self, memory_model):
        state = memory_model.review(MemoryState(), Grade.HARD, T0)

        assert state.stability == pytest.approx(W[1])
        assert state.scheduled_days == 1
        assert state.lifecycle_state == LifecycleState.REVIEW

    def test_new_card_easy(self, memory_model):
        state = memory_model.review(MemoryState(), Grade.EASY, T0)

        assert state.difficulty == pytest.approx(W[4] - W[5])
        assert state.stability == pytest.approx(W[3])
        assert state.scheduled_days == 1


class TestSubsequentReviews:
    def test_again_on_review_card_relearns(self, memory_model):
        state = review_card(stability=10.0, difficulty=5.0)
        now = T0 + timedelta(days=5)

        result = memory_model.review(state, Grade.AGAIN, now)

        r = 1 / (1 + 5 / 90)
        assert r == pytest.approx(0.947, abs=1e-3)
        d = W[7] * W[4] + (1 - W[7]) * (5.0 - W[6] * (1 - 3))
        expected_s = W[11] * d ** -W[12] * ((10.0 + 1) ** W[13] - 1) * math.exp((1 - r) * W[14])

        assert result.lifecycle_state == LifecycleState.RELEARNING
        assert result.difficulty == pytest.approx(d)
        assert result.stability == pytest.approx(expected_s)
        assert result.elapsed_days == pytest.approx(5.0)
        assert result.lapse_count == 1
        assert result.scheduled_days >= 1

    def test_again_on_relearning_card_goes_to_learning(self, memory_model):
        state = memory_model.review(MemoryState(), Grade.AGAIN, T0)
        result = memory_model.review(state, Grade.AGAIN, T0 + timedelta(minutes=10))
        assert result.lifecycle_state == LifecycleState.LEARNING

    def test_successful_recall_grows_stability(self, memory_model):
        state = review_card(stability=10.0)
        for grade in (Grade.HARD, Grade.GOOD, Grade.EASY):
            result = memory_model.review(state, grade, T0 + timedelta(days=10))
            assert result.stability > state.stability
            assert result.lifecycle_state == LifecycleState.REVIEW

    def test_easy_beats_good_beats_hard(self, memory_model):
        previews = memory_model.preview(review_card(), T0 + timedelta(days=10))

        assert set(previews) == set(Grade)
        assert (
            previews[Grade.HARD].scheduled_days
            <= previews[Grade.GOOD].scheduled_days
            <= previews[Grade.EASY].scheduled_days
        )

    def test_difficulty_moves_against_the_grade(self, memory_model):
        state = review_card(difficulty=5.0)
        now = T0 + timedelta(days=10)
        assert memory_model.review(state, Grade.AGAIN, now).difficulty > 5.0
        assert memory_model.review(state, Grade.EASY, now).difficulty < 5.0

    def test_zero_stability_floor(self, memory_model):
        state = review_card(stability=0.0)
        result = memory_model.review(state, Grade.GOOD, T0 + timedelta(days=1))
        assert result.stability >= 0.1

    def test_review_before_last_review_counts_zero_days(self, memory_model):
        state = review_card()
        result = memory_model.review(state, Grade.GOOD, T0 - timedelta(days=1))
        assert result.elapsed_days == 0.0


class TestBounds:
    def test_interval_never_below_one_day(self, memory_model):
        for stability in (0.1, 2.4, 30.0, 400.0):
            assert memory_model.next_interval(stability) == 1

    def test_random_histories_stay_in_range(self, memory_model):
        rng = random.Random(42)
        for _ in range(50):
            state = MemoryState()
            now = T0
            for _ in range(rng.randint(1, 15)):
                grade = rng.choice(list(Grade))
                now = now + timedelta(hours=rng.randint(0, 24 * 40))
                previous_due = state.due_at
                state = memory_model.review(state, grade, now)

                assert 1.0 <= state.difficulty <= 10.0
                assert state.stability > 0
                assert 0 <= state.scheduled_days <= 36500
                if grade != Grade.AGAIN and previous_due is not None:
                    assert state.due_at >= previous_due

    def test_deterministic(self, memory_model):
        state = review_card()
        now = T0 + timedelta(days=7, hours=3)
        assert memory_model.review(state, Grade.GOOD, now) == memory_model.review(
            state, Grade.GOOD, now
        )

    def test_invalid_grade(self, memory_model):
        with pytest.raises(ValueError):
            memory_model.review(MemoryState(), 5, T0)


class TestRetrievability:
    def test_new_card_has_no_retrievability(self, memory_model):
        assert memory_model.retrievability(MemoryState(), T0) == 0.0

    def test_right_after_review(self, memory_model):
        assert memory_model.retrievability(review_card(), T0) == pytest.approx(1.0)

    def test_half_life_at_nine_stabilities(self, memory_model):
        state = review_card(stability=2.0)
        assert memory_model.retrievability(state, T0 + timedelta(days=18)) == pytest.approx(0.5)

    def test_ninety_percent_at_stability(self):
        assert MemoryModel.retrievability_at(10.0, 10.0) == pytest.approx(0.9)

    def test_naive_timestamps_are_utc(self):
        naive = datetime(2026, 1, 5, 9, 0)
        assert calculate_days_since(naive, T0 + timedelta(days=1)) == pytest.approx(1.0)
        assert calculate_days_since(None, T0) == 0.0


class TestReplay:
    def test_replay_matches_sequential_reviews(self, memory_model):
        history = [
            SimpleNamespace(grade=3, reviewed_at=T0),
            SimpleNamespace(grade=1, reviewed_at=T0 + timedelta(days=3)),
            SimpleNamespace(grade=3, reviewed_at=T0 + timedelta(days=3, minutes=10)),
            SimpleNamespace(grade=4, reviewed_at=T0 + timedelta(days=9)),
        ]

        state = MemoryState()
        for entry in history:
            state = memory_model.review(state, entry.grade, entry.reviewed_at)

        assert memory_model.replay(history) == state

    def test_replay_of_nothing_is_new(self, memory_model):
        assert memory_model.replay([]) == MemoryState()


class TestParameters:
    def test_weights_length_checked(self):
        with pytest.raises(ValueError):
            SchedulerParameters(weights=DEFAULT_WEIGHTS[:-1])

    def test_retention_bounds_checked(self):
        with pytest.raises(ValueError):
            SchedulerParameters(desired_retention=1.0)

    def test_initial_again_stability_must_be_positive(self):
        with pytest.raises(ValueError):
            SchedulerParameters(weights=(0.0,) + DEFAULT_WEIGHTS[1:])

    def test_due_priority_order(self):
        ordered = sorted(LifecycleState, key=lambda s: s.due_priority)
        assert ordered == [
            LifecycleState.RELEARNING,
            LifecycleState.LEARNING,
            LifecycleState.REVIEW,
            LifecycleState.NEW,
        ]
