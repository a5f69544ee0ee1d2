"""Reporting router - session statistics and daily activity."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from memora.api.dependencies import get_now, get_services
from memora.api.schemas import ApiModel
from memora.services import Services, SessionStats, TimeWindow

router = APIRouter()


class DayStatsModel(ApiModel):
    day: date
    reviews: int
    correct: int
    time_on_task_ms: int


class SessionBreakdownModel(ApiModel):
    session_id: str
    reviews: int
    correct: int
    avg_grade: float | None
    time_on_task_ms: int


class StatsModel(ApiModel):
    student_id: str
    window_start: datetime
    window_end: datetime
    total_reviews: int
    correct: int
    incorrect: int
    accuracy: float | None
    time_on_task_ms: int
    current_streak: int
    longest_streak: int
    days: list[DayStatsModel]
    sessions: list[SessionBreakdownModel]

    @classmethod
    def from_stats(cls, stats: SessionStats) -> StatsModel:
        return cls(
            student_id=stats.student_id,
            window_start=stats.window.start,
            window_end=stats.window.end,
            total_reviews=stats.total_reviews,
            correct=stats.correct,
            incorrect=stats.incorrect,
            accuracy=stats.accuracy,
            time_on_task_ms=stats.time_on_task_ms,
            current_streak=stats.current_streak,
            longest_streak=stats.longest_streak,
            days=[
                DayStatsModel(
                    day=d.day,
                    reviews=d.reviews,
                    correct=d.correct,
                    time_on_task_ms=d.time_on_task_ms,
                )
                for d in stats.days
            ],
            sessions=[
                SessionBreakdownModel(
                    session_id=s.session_id,
                    reviews=s.reviews,
                    correct=s.correct,
                    avg_grade=s.avg_grade,
                    time_on_task_ms=s.time_on_task_ms,
                )
                for s in stats.sessions
            ],
        )


class DailyActivityModel(ApiModel):
    student_id: str
    activity_date: date = Field(..., alias="date")
    reviews_count: int
    correct_count: int
    new_cards_seen: int
    time_spent_ms: int


@router.get("/stats/{student_id}", response_model=StatsModel, summary="Review statistics")
def get_stats(
    student_id: str,
    days: int = Query(7, ge=1, le=365, description="Look-back window in days"),
    services: Services = Depends(get_services),
    now: datetime = Depends(get_now),
) -> StatsModel:
    """Counts, accuracy, time on task and streaks over the last `days` days."""
    window = TimeWindow.last_days(days, now)
    return StatsModel.from_stats(services.aggregator.summarize(student_id, window))


@router.get(
    "/daily-activity/{student_id}",
    response_model=list[DailyActivityModel],
    summary="Daily review counters",
)
def get_daily_activity(
    student_id: str,
    start: date | None = Query(None, alias="from"),
    end: date | None = Query(None, alias="to"),
    services: Services = Depends(get_services),
    now: datetime = Depends(get_now),
) -> list[DailyActivityModel]:
    """Days with activity in [from, to]. Defaults to the last 30 days; at most 365 days."""
    end = end or now.date()
    start = start or end - timedelta(days=29)
    rows = services.aggregator.daily_activity(student_id, start, end)
    return [DailyActivityModel.model_validate(row) for row in rows]
