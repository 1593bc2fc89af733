# backend/app/routers/matches.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import MatchNotFound, ProblemDetail, http_problem
from ..rate_limit import client_ip, limiter, scoring_rate_limit
from ..schemas import (
    AutoFinishIn,
    AutoFinishOut,
    MatchActionIn,
    MatchActionOut,
    MatchCreate,
    MatchOut,
    MatchStatus,
)
from ..services import live_scoring, match_store


# Resource-only prefix; versioning is added in main.py
router = APIRouter(
    prefix="/matches",
    tags=["matches"],
    responses={404: {"model": ProblemDetail}},
)


# POST /api/v0/matches
@router.post("", response_model=MatchOut, status_code=status.HTTP_201_CREATED)
async def create_match(
    body: MatchCreate,
    session: AsyncSession = Depends(get_session),
) -> MatchOut:
    record = await live_scoring.create_match(session, body)
    return match_store.to_match_out(record)


# GET /api/v0/matches?table=3&date=2025-06-01
@router.get("", response_model=list[MatchOut])
async def list_matches(
    table: Optional[int] = Query(None, ge=1),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    encounter_id: Optional[str] = Query(None, alias="encounterId"),
    status_: Optional[MatchStatus] = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
) -> list[MatchOut]:
    rows = await live_scoring.list_matches(
        session,
        table=table,
        day=date,
        encounter_id=encounter_id,
        status=status_,
    )
    return [match_store.to_match_out(r) for r in rows]


# POST /api/v0/matches/auto-finish
@router.post("/auto-finish", response_model=AutoFinishOut)
async def auto_finish_matches(
    body: AutoFinishIn,
    session: AsyncSession = Depends(get_session),
) -> AutoFinishOut:
    updated = await live_scoring.auto_mark_finished_matches(session, body.encounter_id)
    return AutoFinishOut(updated=updated)


# GET /api/v0/matches/{mid}
@router.get("/{mid}", response_model=MatchOut)
async def get_match(mid: str, session: AsyncSession = Depends(get_session)) -> MatchOut:
    record = await match_store.get(session, mid)
    if record is None:
        raise MatchNotFound(mid)
    return match_store.to_match_out(record)


# POST /api/v0/matches/{mid}/actions
@router.post("/{mid}/actions", response_model=MatchActionOut)
@limiter.limit(scoring_rate_limit, key_func=client_ip)
async def apply_match_action(
    request: Request,
    mid: str,
    body: MatchActionIn,
    session: AsyncSession = Depends(get_session),
) -> MatchActionOut:
    try:
        record, effects = await live_scoring.apply_action(
            session,
            mid,
            body.to_event(),
            expected_version=body.expected_version,
        )
    except ValueError as exc:
        raise http_problem(
            status_code=400,
            detail=str(exc),
            code="match_event_invalid",
        )

    return MatchActionOut(
        changed=effects.changed,
        sides_flipped=effects.sides_flipped,
        winner=effects.winner,
        match=match_store.to_match_out(record),
    )
