from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..schemas import MatchOut, TableStatusOut
from ..services import live_scoring, match_store

router = APIRouter(prefix="/tables", tags=["tables"])


# GET /api/v0/tables/{table}/status
@router.get("/{table}/status", response_model=TableStatusOut)
async def table_status(
    table: int = Path(..., ge=1),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    encounter_id: Optional[str] = Query(None, alias="encounterId"),
    session: AsyncSession = Depends(get_session),
) -> TableStatusOut:
    active = await live_scoring.find_active_match(
        session, table, day=date, encounter_id=encounter_id
    )
    return TableStatusOut(
        table=table,
        has_active_match=active is not None,
        active_match_id=active,
    )


# GET /api/v0/tables/{table}/matches
@router.get("/{table}/matches", response_model=list[MatchOut])
async def table_matches(
    table: int = Path(..., ge=1),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    encounter_id: Optional[str] = Query(None, alias="encounterId"),
    session: AsyncSession = Depends(get_session),
) -> list[MatchOut]:
    rows = await live_scoring.list_matches(
        session, table=table, day=date, encounter_id=encounter_id
    )
    return [match_store.to_match_out(r) for r in rows]
