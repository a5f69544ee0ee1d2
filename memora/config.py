"""
Configuration settings for the memora review service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from memora.core.mastery import MasteryParameters
from memora.core.memory_model import DEFAULT_WEIGHTS, SchedulerParameters


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MEMORA_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///memora.db",
        description="SQLAlchemy connection string (sqlite or postgresql)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # FSRS Settings (memory model)
    # ========================================
    fsrs_weights: list[float] = Field(
        default_factory=lambda: list(DEFAULT_WEIGHTS),
        description="17-element FSRS weight vector",
    )
    fsrs_desired_retention: float = Field(
        default=0.9,
        gt=0,
        lt=1,
        description="Target retention rate for scheduling",
    )
    fsrs_maximum_interval: int = Field(
        default=36500,
        ge=1,
        description="Longest interval the scheduler may assign (days)",
    )

    # ========================================
    # BKT Settings (mastery model)
    # ========================================
    bkt_default_p_init: float = Field(default=0.0, ge=0, le=1)
    bkt_default_p_slip: float = Field(default=0.1, ge=0, le=1)
    bkt_default_p_guess: float = Field(default=0.25, ge=0, le=1)
    bkt_default_p_transit: float = Field(default=0.1, ge=0, le=1)
    mastery_color_thresholds: list[float] = Field(
        default_factory=lambda: [0.25, 0.5, 0.75],
        description="Lower bounds of the orange, yellow and green buckets",
    )
    correct_grade_threshold: int = Field(
        default=3,
        ge=1,
        le=4,
        description="Lowest grade that counts as a correct answer for mastery",
    )

    # ========================================
    # Review Pipeline
    # ========================================
    review_max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries after a lost-update conflict before giving up",
    )
    due_default_limit: int = Field(
        default=50,
        ge=1,
        description="Default number of due cards returned",
    )

    @field_validator("fsrs_weights")
    @classmethod
    def _check_weights(cls, value: list[float]) -> list[float]:
        if len(value) != 17:
            raise ValueError(f"fsrs_weights needs 17 values, got {len(value)}")
        if value[0] <= 0:
            raise ValueError("fsrs_weights[0] must be positive")
        return value

    @field_validator("mastery_color_thresholds")
    @classmethod
    def _check_thresholds(cls, value: list[float]) -> list[float]:
        if len(value) != 3 or sorted(value) != value:
            raise ValueError("mastery_color_thresholds needs 3 ascending values")
        if any(not 0.0 <= t <= 1.0 for t in value):
            raise ValueError("mastery_color_thresholds must lie in [0, 1]")
        return value

    def get_scheduler_parameters(self) -> SchedulerParameters:
        """Build the frozen FSRS parameter set."""
        return SchedulerParameters(
            weights=tuple(self.fsrs_weights),
            desired_retention=self.fsrs_desired_retention,
            maximum_interval=self.fsrs_maximum_interval,
        )

    def get_mastery_parameters(self) -> MasteryParameters:
        """Build the frozen BKT parameter set."""
        return MasteryParameters(
            p_init=self.bkt_default_p_init,
            p_slip=self.bkt_default_p_slip,
            p_guess=self.bkt_default_p_guess,
            p_transit=self.bkt_default_p_transit,
            color_thresholds=tuple(self.mastery_color_thresholds),
            correct_grade_threshold=self.correct_grade_threshold,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Route loguru output to stderr (and the log file, when configured)."""
    settings = settings or get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
        )
