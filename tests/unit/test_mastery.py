"""
Unit tests for BKT mastery tracking.
"""

import random
from datetime import UTC, datetime, timedelta

import pytest

from memora.core.mastery import MasteryColor, MasteryModel, MasteryParameters, MasteryState

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


def tcp_state(**overrides):
    values = dict(p_know=0.5, p_slip=0.1, p_guess=0.2, p_transit=0.3)
    values.update(overrides)
    return MasteryState(**values)


class TestBayesianUpdate:
    def test_correct_answer(self, mastery_model):
        result = mastery_model.update(tcp_state(), True, T0)

        posterior = 0.5 * 0.9 / (0.5 * 0.9 + 0.5 * 0.2)
        assert posterior == pytest.approx(0.818, abs=1e-3)
        assert result.p_know == pytest.approx(posterior + (1 - posterior) * 0.3)
        assert result.p_know == pytest.approx(0.873, abs=1e-3)
        assert result.color == MasteryColor.GREEN
        assert result.delta == pytest.approx(result.p_know - 0.5)

    def test_incorrect_answer(self, mastery_model):
        result = mastery_model.update(tcp_state(), False, T0)

        posterior = 0.5 * 0.1 / (0.5 * 0.1 + 0.5 * 0.8)
        assert posterior == pytest.approx(0.111, abs=1e-3)
        assert result.p_know == pytest.approx(0.378, abs=1e-3)
        assert result.color == MasteryColor.ORANGE
        assert result.delta < 0

    def test_bookkeeping(self, mastery_model):
        result = mastery_model.update(tcp_state(review_count=4), True, T0, stability=12.5)

        assert result.review_count == 5
        assert result.last_review_at == T0
        assert result.stability == 12.5
        # seeds never change
        assert (result.p_slip, result.p_guess, result.p_transit) == (0.1, 0.2, 0.3)

    def test_stability_kept_when_not_supplied(self, mastery_model):
        result = mastery_model.update(tcp_state(stability=3.0), True, T0)
        assert result.stability == 3.0

    def test_input_state_not_modified(self, mastery_model):
        state = tcp_state()
        mastery_model.update(state, True, T0)
        assert state.p_know == 0.5
        assert state.review_count == 0

    def test_zero_denominator_keeps_prior(self):
        # p_know=1 and p_slip=1: an incorrect answer is certain, correct one impossible
        state = MasteryState(p_know=1.0, p_slip=1.0, p_guess=0.0, p_transit=0.0)
        assert MasteryModel.posterior(state, True) == 1.0


class TestProperties:
    def test_correct_never_lowers_incorrect_never_raises_posterior(self):
        rng = random.Random(7)
        for _ in range(500):
            state = MasteryState(
                p_know=rng.random(),
                p_slip=rng.uniform(0, 0.49),
                p_guess=rng.uniform(0, 0.49),
                p_transit=rng.random(),
            )
            assert MasteryModel.posterior(state, True) >= state.p_know - 1e-12
            assert MasteryModel.posterior(state, False) <= state.p_know + 1e-12

    def test_probabilities_stay_bounded(self, mastery_model):
        rng = random.Random(11)
        state = mastery_model.initial_state()
        for i in range(300):
            state = mastery_model.update(state, rng.random() < 0.5, T0 + timedelta(hours=i))
            assert 0.0 <= state.p_know <= 1.0

    def test_color_never_drops_on_correct_answer(self, mastery_model):
        rng = random.Random(3)
        for _ in range(200):
            state = mastery_model.initial_state(p_init=rng.random())
            result = mastery_model.update(state, True, T0)
            assert result.color.rank >= state.color.rank

    def test_repeated_correct_answers_reach_green(self, mastery_model):
        state = mastery_model.initial_state()
        for i in range(10):
            state = mastery_model.update(state, True, T0 + timedelta(days=i))
        assert state.color == MasteryColor.GREEN


class TestColors:
    @pytest.mark.parametrize(
        "p_know,color",
        [
            (0.0, MasteryColor.RED),
            (0.2499, MasteryColor.RED),
            (0.25, MasteryColor.ORANGE),
            (0.5, MasteryColor.YELLOW),
            (0.7499, MasteryColor.YELLOW),
            (0.75, MasteryColor.GREEN),
            (1.0, MasteryColor.GREEN),
        ],
    )
    def test_thresholds(self, mastery_model, p_know, color):
        assert mastery_model.color_for(p_know) == color

    def test_custom_thresholds(self):
        model = MasteryModel(MasteryParameters(color_thresholds=(0.1, 0.2, 0.3)))
        assert model.color_for(0.35) == MasteryColor.GREEN

    def test_rank_order(self):
        ranks = [c.rank for c in (MasteryColor.RED, MasteryColor.ORANGE, MasteryColor.YELLOW, MasteryColor.GREEN)]
        assert ranks == [0, 1, 2, 3]


class TestSeeds:
    def test_defaults(self, mastery_model):
        state = mastery_model.initial_state()
        assert state.p_know == 0.0
        assert (state.p_slip, state.p_guess, state.p_transit) == (0.1, 0.25, 0.1)
        assert state.color == MasteryColor.RED
        assert state.review_count == 0

    def test_unit_overrides(self, mastery_model):
        state = mastery_model.initial_state(p_init=0.6, p_guess=0.3)
        assert state.p_know == 0.6
        assert state.p_guess == 0.3
        assert state.p_slip == 0.1
        assert state.color == MasteryColor.YELLOW

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            MasteryParameters(p_slip=1.5)

    @pytest.mark.parametrize("grade,correct", [(1, False), (2, False), (3, True), (4, True)])
    def test_correct_grade_threshold(self, mastery_model, grade, correct):
        assert mastery_model.is_correct(grade) is correct


class TestDisplayMastery:
    def test_unreviewed_unit_shows_raw_probability(self):
        assert MasteryModel.display_mastery(tcp_state(), T0) == 0.5

    def test_decays_with_time(self):
        state = tcp_state(p_know=0.8, stability=10.0, last_review_at=T0)
        assert MasteryModel.display_mastery(state, T0) == pytest.approx(0.8)
        # R(10 days, S=10) = 0.9
        assert MasteryModel.display_mastery(state, T0 + timedelta(days=10)) == pytest.approx(0.72)
