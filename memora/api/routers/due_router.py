"""Due queue router."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from memora.api.dependencies import get_app_settings, get_now, get_services
from memora.api.schemas import ApiModel
from memora.config import Settings
from memora.services import DueItem, Services

router = APIRouter()


class DueItemModel(ApiModel):
    card_id: str
    front: str
    back: str
    knowledge_unit_id: str | None
    due_at: datetime
    lifecycle_state: int
    stability: float
    difficulty: float
    repetition_count: int
    lapse_count: int
    overdue_days: float

    @classmethod
    def from_item(cls, item: DueItem) -> DueItemModel:
        return cls(
            card_id=item.card_id,
            front=item.front,
            back=item.back,
            knowledge_unit_id=item.knowledge_unit_id,
            due_at=item.due_at,
            lifecycle_state=int(item.lifecycle_state),
            stability=item.stability,
            difficulty=item.difficulty,
            repetition_count=item.repetition_count,
            lapse_count=item.lapse_count,
            overdue_days=round(item.overdue_days, 4),
        )


@router.get("/items/due", response_model=list[DueItemModel], summary="List due flashcards")
def list_due_items(
    student_id: str = Query(..., alias="studentId", min_length=1),
    limit: int | None = Query(None, ge=1, le=500),
    services: Services = Depends(get_services),
    settings: Settings = Depends(get_app_settings),
    now: datetime = Depends(get_now),
) -> list[DueItemModel]:
    """
    Flashcards due now, most overdue first.

    Ties are broken by lifecycle state (Relearning, Learning, Review, New)
    and then by card id.
    """
    sequence = services.due_queue.list_due(student_id, now, limit or settings.due_default_limit)
    return [DueItemModel.from_item(item) for item in sequence]
