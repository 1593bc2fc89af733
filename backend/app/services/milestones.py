"""Milestones: highlights flagged by the operator while a match is running."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import MILESTONE_FALLBACK_SECONDS
from ..models import MatchRecord, Milestone
from ..schemas import MilestoneMatchInfo
from ..time_utils import coerce_utc, utcnow


def effective_start_time(start_time: datetime | None, now: datetime) -> datetime:
    """Start time used to date a milestone.

    A missing start time, one in the future or one from another year points at
    a bad record; the milestone is then dated a few minutes into the match.
    """

    start = coerce_utc(start_time)
    if start is not None and start.year == now.year and start < now:
        return start
    return now - timedelta(seconds=MILESTONE_FALLBACK_SECONDS)


def build_match_info(record: MatchRecord, now: datetime) -> MilestoneMatchInfo:
    start = effective_start_time(record.start_time, now)
    sets = record.sets or []
    current = sets[-1] if sets else {"A": 0, "B": 0}
    return MilestoneMatchInfo(
        match_id=record.id,
        player1_name=record.player1_name,
        player2_name=record.player2_name,
        player1_country=record.player1_country,
        player2_country=record.player2_country,
        match_start_time=start,
        time_since_start=max(0, int((now - start).total_seconds())),
        current_score={"A": int(current["A"]), "B": int(current["B"])},
        sets_won=dict(record.sets_won or {"A": 0, "B": 0}),
        match_status=record.status,
        match_desc=record.match_desc,
    )


async def add_milestone(
    session: AsyncSession,
    record: MatchRecord,
    *,
    encounter_id: str | None = None,
    now: datetime | None = None,
) -> Milestone:
    now = coerce_utc(now) if now is not None else utcnow()
    info = build_match_info(record, now)
    milestone = Milestone(
        id=uuid.uuid4().hex,
        table_number=record.table_number,
        encounter_id=encounter_id or record.encounter_id,
        match_id=record.id,
        date=now.date().isoformat(),
        time=now.strftime("%H:%M:%S"),
        recorded_at=now,
        match_info=info.model_dump(mode="json", by_alias=True),
    )
    session.add(milestone)
    await session.commit()
    return milestone


async def list_milestones(
    session: AsyncSession,
    *,
    table: int | None = None,
    day: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[Milestone]:
    stmt = select(Milestone)
    if table is not None:
        stmt = stmt.where(Milestone.table_number == table)
    if day:
        stmt = stmt.where(Milestone.date == day)
    if start_date:
        stmt = stmt.where(Milestone.date >= start_date)
    if end_date:
        stmt = stmt.where(Milestone.date <= end_date)
    stmt = stmt.order_by(Milestone.recorded_at.desc())
    return list((await session.execute(stmt)).scalars().all())
