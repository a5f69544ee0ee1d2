"""
Study sessions router.

Endpoints:
- POST /sessions               start a session for a student
- GET  /sessions/{session_id}  session details
- PUT  /sessions/{session_id}/end   close it and compute its summary
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, status
from loguru import logger
from pydantic import Field

from memora.api.dependencies import get_now, get_services
from memora.api.schemas import ApiModel
from memora.services import Services, SessionSummary

router = APIRouter()


class SessionCreateRequest(ApiModel):
    student_id: str = Field(..., min_length=1, description="Student identifier")
    item_kind: str = Field("flashcard", description="flashcard or quiz")


class SessionModel(ApiModel):
    session_id: str
    student_id: str
    item_kind: str
    started_at: datetime
    ended_at: datetime | None
    items_reviewed: int
    avg_grade: float | None
    total_time_ms: int | None

    @classmethod
    def from_summary(cls, summary: SessionSummary) -> SessionModel:
        return cls(
            session_id=summary.session_id,
            student_id=summary.student_id,
            item_kind=summary.item_kind,
            started_at=summary.started_at,
            ended_at=summary.ended_at,
            items_reviewed=summary.items_reviewed,
            avg_grade=summary.avg_grade,
            total_time_ms=summary.total_time_ms,
        )


@router.post(
    "/sessions",
    response_model=SessionModel,
    status_code=status.HTTP_201_CREATED,
    summary="Start a study session",
)
def create_session(
    request: SessionCreateRequest,
    services: Services = Depends(get_services),
    now: datetime = Depends(get_now),
) -> SessionModel:
    logger.info(f"Starting {request.item_kind} session for {request.student_id}")
    return SessionModel.from_summary(
        services.sessions.start(request.student_id, request.item_kind, now)
    )


@router.get("/sessions/{session_id}", response_model=SessionModel, summary="Get a study session")
def get_session(session_id: str, services: Services = Depends(get_services)) -> SessionModel:
    return SessionModel.from_summary(services.sessions.get(session_id))


@router.put("/sessions/{session_id}/end", response_model=SessionModel, summary="End a study session")
def end_session(
    session_id: str,
    services: Services = Depends(get_services),
    now: datetime = Depends(get_now),
) -> SessionModel:
    """Close the session. Its counters are computed from the reviews it recorded."""
    return SessionModel.from_summary(services.sessions.end(session_id, now))
