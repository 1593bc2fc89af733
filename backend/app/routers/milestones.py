from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import MatchNotFound, ProblemDetail
from ..models import Milestone
from ..schemas import MilestoneCreate, MilestoneOut
from ..services import match_store, milestones

router = APIRouter(tags=["milestones"], responses={404: {"model": ProblemDetail}})


def _to_milestone_out(milestone: Milestone) -> MilestoneOut:
    return MilestoneOut(
        id=milestone.id,
        table_number=milestone.table_number,
        encounter_id=milestone.encounter_id,
        match_id=milestone.match_id,
        date=milestone.date,
        time=milestone.time,
        recorded_at=milestone.recorded_at,
        match_info=milestone.match_info,
    )


# POST /api/v0/matches/{mid}/milestones
@router.post(
    "/matches/{mid}/milestones",
    response_model=MilestoneOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_match_milestone(
    mid: str,
    body: MilestoneCreate | None = None,
    session: AsyncSession = Depends(get_session),
) -> MilestoneOut:
    record = await match_store.get(session, mid)
    if record is None:
        raise MatchNotFound(mid)
    milestone = await milestones.add_milestone(
        session, record, encounter_id=body.encounter_id if body else None
    )
    return _to_milestone_out(milestone)


# GET /api/v0/milestones?table=3&date=2025-06-01
@router.get("/milestones", response_model=list[MilestoneOut])
async def list_milestones(
    table: Optional[int] = Query(None, ge=1),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    session: AsyncSession = Depends(get_session),
) -> list[MilestoneOut]:
    rows = await milestones.list_milestones(
        session,
        table=table,
        day=date,
        start_date=start_date,
        end_date=end_date,
    )
    return [_to_milestone_out(m) for m in rows]
