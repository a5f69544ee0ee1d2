"""Mastery router - BKT state per knowledge unit."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends

from memora.api.dependencies import get_now, get_services
from memora.api.schemas import ApiModel
from memora.core.mastery import MasteryColor
from memora.services import MasterySnapshot, Services

router = APIRouter()


class MasteryStateModel(ApiModel):
    student_id: str
    unit_id: str
    p_know: float
    p_slip: float
    p_guess: float
    p_transit: float
    stability: float
    delta: float
    color: MasteryColor
    last_review_at: datetime | None
    review_count: int
    display_mastery: float

    @classmethod
    def from_snapshot(cls, snapshot: MasterySnapshot) -> MasteryStateModel:
        state = snapshot.state
        return cls(
            student_id=snapshot.student_id,
            unit_id=snapshot.unit_id,
            p_know=state.p_know,
            p_slip=state.p_slip,
            p_guess=state.p_guess,
            p_transit=state.p_transit,
            stability=state.stability,
            delta=state.delta,
            color=state.color,
            last_review_at=state.last_review_at,
            review_count=state.review_count,
            display_mastery=snapshot.display_mastery,
        )


@router.get(
    "/mastery/{student_id}",
    response_model=list[MasteryStateModel],
    summary="List a student's mastery states",
)
def list_mastery(
    student_id: str,
    services: Services = Depends(get_services),
    now: datetime = Depends(get_now),
) -> list[MasteryStateModel]:
    return [
        MasteryStateModel.from_snapshot(snapshot)
        for snapshot in services.states.all_mastery(student_id, now)
    ]


@router.get(
    "/mastery/{student_id}/{unit_id}",
    response_model=MasteryStateModel,
    summary="Get mastery of one knowledge unit",
)
def get_mastery(
    student_id: str,
    unit_id: str,
    services: Services = Depends(get_services),
    now: datetime = Depends(get_now),
) -> MasteryStateModel:
    """
    Mastery snapshot for a student and knowledge unit.

    `displayMastery` is pKnow decayed by how much of the unit the student
    has likely forgotten since the last review; it is never stored.
    """
    return MasteryStateModel.from_snapshot(services.states.mastery(student_id, unit_id, now))
