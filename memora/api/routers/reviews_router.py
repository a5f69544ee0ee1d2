"""
Reviews router.

Endpoints:
- POST /reviews                          grade one item (sole write path)
- GET  /memory/{student_id}/{item_id}    memory state with current retrievability
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import Field

from memora.api.dependencies import get_now, get_services
from memora.api.schemas import ApiModel
from memora.core.mastery import MasteryColor
from memora.services import Services
from memora.services.review_pipeline import ReviewRequest, ReviewResponse

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class ReviewRequestModel(ApiModel):
    """A graded review submitted by a session."""

    session_id: str = Field(..., min_length=1)
    item_id: str = Field(..., min_length=1)
    item_kind: str = Field(..., description="flashcard or quiz")
    grade: int = Field(..., strict=True, description="1=Again, 2=Hard, 3=Good, 4=Easy")
    response_time_ms: int | None = Field(None, description="Answer latency in milliseconds")


class MemoryUpdateModel(ApiModel):
    due_at: datetime
    stability: float
    difficulty: float
    lifecycle_state: int
    repetition_count: int
    lapse_count: int
    scheduled_days: int


class MasteryUpdateModel(ApiModel):
    unit_id: str
    p_know: float
    color: MasteryColor
    delta: float


class ReviewResponseModel(ApiModel):
    review_id: str
    memory_update: MemoryUpdateModel
    mastery_update: MasteryUpdateModel | None = None
    color_before: MasteryColor | None = None
    color_after: MasteryColor | None = None

    @classmethod
    def from_result(cls, result: ReviewResponse) -> ReviewResponseModel:
        memory = result.memory_update
        mastery = result.mastery_update
        return cls(
            review_id=result.review_id,
            memory_update=MemoryUpdateModel(
                due_at=memory.due_at,
                stability=memory.stability,
                difficulty=memory.difficulty,
                lifecycle_state=int(memory.lifecycle_state),
                repetition_count=memory.repetition_count,
                lapse_count=memory.lapse_count,
                scheduled_days=memory.scheduled_days,
            ),
            mastery_update=(
                MasteryUpdateModel(
                    unit_id=mastery.unit_id,
                    p_know=mastery.p_know,
                    color=mastery.color,
                    delta=mastery.delta,
                )
                if mastery
                else None
            ),
            color_before=result.color_before,
            color_after=result.color_after,
        )


class MemoryStateModel(ApiModel):
    student_id: str
    item_id: str
    due_at: datetime | None
    stability: float
    difficulty: float
    elapsed_days: float
    scheduled_days: int
    repetition_count: int
    lapse_count: int
    lifecycle_state: int
    last_review_at: datetime | None
    retrievability: float


# ========================================
# Endpoints
# ========================================


@router.post("/reviews", response_model=ReviewResponseModel, summary="Submit a graded review")
def submit_review(
    request: ReviewRequestModel,
    services: Services = Depends(get_services),
    now: datetime = Depends(get_now),
) -> ReviewResponseModel:
    """
    Grade one flashcard or quiz item.

    Updates the item's memory state and, when the item is linked to a
    knowledge unit, the student's mastery of that unit. Both updates and
    the review log entry are written in one transaction.
    """
    result = services.pipeline.handle_review(
        ReviewRequest(
            session_id=request.session_id,
            item_id=request.item_id,
            item_kind=request.item_kind,
            grade=request.grade,
            response_time_ms=request.response_time_ms,
        ),
        now=now,
    )
    return ReviewResponseModel.from_result(result)


@router.get(
    "/memory/{student_id}/{item_id}",
    response_model=MemoryStateModel,
    summary="Get memory state for one item",
)
def get_memory_state(
    student_id: str,
    item_id: str,
    services: Services = Depends(get_services),
    now: datetime = Depends(get_now),
) -> MemoryStateModel:
    snapshot = services.states.memory(student_id, item_id, now)
    state = snapshot.state
    return MemoryStateModel(
        student_id=student_id,
        item_id=item_id,
        due_at=state.due_at,
        stability=state.stability,
        difficulty=state.difficulty,
        elapsed_days=state.elapsed_days,
        scheduled_days=state.scheduled_days,
        repetition_count=state.repetition_count,
        lapse_count=state.lapse_count,
        lifecycle_state=int(state.lifecycle_state),
        last_review_at=state.last_review_at,
        retrievability=snapshot.retrievability,
    )
