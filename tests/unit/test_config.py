"""
Unit tests for settings and logging configuration.
"""

import pytest
from pydantic import ValidationError

from memora.config import Settings, configure_logging
from memora.core.mastery import MasteryParameters
from memora.core.memory_model import DEFAULT_WEIGHTS, SchedulerParameters


def test_defaults(settings):
    assert settings.fsrs_desired_retention == 0.9
    assert settings.fsrs_maximum_interval == 36500
    assert settings.mastery_color_thresholds == [0.25, 0.5, 0.75]
    assert settings.correct_grade_threshold == 3
    assert settings.review_max_retries == 3


def test_parameter_objects(settings):
    scheduler = settings.get_scheduler_parameters()
    mastery = settings.get_mastery_parameters()

    assert isinstance(scheduler, SchedulerParameters)
    assert scheduler.weights == DEFAULT_WEIGHTS
    assert isinstance(mastery, MasteryParameters)
    assert mastery.color_thresholds == (0.25, 0.5, 0.75)
    assert (mastery.p_init, mastery.p_slip, mastery.p_guess, mastery.p_transit) == (
        0.0,
        0.1,
        0.25,
        0.1,
    )


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MEMORA_FSRS_DESIRED_RETENTION", "0.85")
    monkeypatch.setenv("MEMORA_BKT_DEFAULT_P_SLIP", "0.2")

    settings = Settings(_env_file=None)

    assert settings.fsrs_desired_retention == 0.85
    assert settings.get_mastery_parameters().p_slip == 0.2


def test_weights_need_seventeen_values():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, fsrs_weights=[0.4] * 16)


def test_thresholds_must_ascend():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, mastery_color_thresholds=[0.5, 0.25, 0.75])


@pytest.mark.parametrize("thresholds", [[-0.1, 0.5, 0.75], [0.25, 0.5, 1.5]])
def test_thresholds_must_be_probabilities(thresholds):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, mastery_color_thresholds=thresholds)
    with pytest.raises(ValueError):
        MasteryParameters(color_thresholds=tuple(thresholds))


def test_first_weight_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, fsrs_weights=[0.0, *DEFAULT_WEIGHTS[1:]])


def test_retention_must_be_a_probability():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, fsrs_desired_retention=1.5)


def test_configure_logging_writes_log_file(tmp_path):
    from loguru import logger

    log_file = tmp_path / "logs" / "memora.log"
    configure_logging(Settings(_env_file=None, log_file=str(log_file), log_level="DEBUG"))

    logger.debug("hello from the test")
    logger.remove()

    assert "hello from the test" in log_file.read_text(encoding="utf-8")
