"""Host side of live scoring.

Loads the authoritative match record, runs the pure scoring engine and writes
the result back through the match store. Also holds the table-level policy
that keeps two matches from being scored at once on one table.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import AUTO_FINISH_GRACE_HOURS
from ..exceptions import MatchAlreadyExists, MatchNotFound, TableBusy
from ..models import MatchRecord
from ..schemas import MatchCreate
from ..scoring import table_tennis
from ..time_utils import parse_scheduled_time, utcnow
from . import match_store

logger = logging.getLogger(__name__)


async def create_match(session: AsyncSession, body: MatchCreate) -> MatchRecord:
    """Seed a waiting match from tournament feed metadata."""

    if body.feed_match_id:
        existing = (
            await session.execute(
                select(MatchRecord.id).where(
                    MatchRecord.feed_match_id == body.feed_match_id
                )
            )
        ).scalar_one_or_none()
        if existing:
            raise MatchAlreadyExists(body.feed_match_id)

    members = {}
    if body.player1.members:
        members["A"] = [m.model_dump() for m in body.player1.members]
    if body.player2.members:
        members["B"] = [m.model_dump() for m in body.player2.members]

    state = table_tennis.init_state()
    record = MatchRecord(
        id=uuid.uuid4().hex,
        feed_match_id=body.feed_match_id,
        championship_id=body.championship_id,
        encounter_id=body.encounter_id,
        date=body.date,
        table_number=body.table,
        event_key=body.event_key,
        match_desc=body.match_desc,
        scheduled_time=body.scheduled_time,
        match_number=body.match_number,
        match_type=body.type,
        player1_name=body.player1.name,
        player1_country=body.player1.country,
        player2_name=body.player2.name,
        player2_country=body.player2.country,
        feed_details={"members": members} if members else None,
        sets=state["sets"],
        sets_won=state["setsWon"],
        status=state["status"],
        start_time=state["startTime"],
        side_flipped=state["sideFlipped"],
        version=0,
    )
    session.add(record)
    await session.commit()
    logger.info("Seeded match %s on table %s", record.id, record.table_number)
    return record


async def find_active_match(
    session: AsyncSession,
    table: int,
    *,
    day: str | None = None,
    encounter_id: str | None = None,
    exclude: str | None = None,
) -> str | None:
    """Return the id of a match in progress on ``table``, if any."""

    stmt = select(MatchRecord.id).where(
        MatchRecord.table_number == table,
        MatchRecord.status == table_tennis.IN_PROGRESS,
    )
    if day:
        stmt = stmt.where(MatchRecord.date == day)
    if encounter_id:
        stmt = stmt.where(MatchRecord.encounter_id == encounter_id)
    if exclude:
        stmt = stmt.where(MatchRecord.id != exclude)
    return (await session.execute(stmt.limit(1))).scalars().first()


async def apply_action(
    session: AsyncSession,
    mid: str,
    event: dict,
    *,
    expected_version: int | None = None,
    now: datetime | None = None,
) -> tuple[MatchRecord, table_tennis.Effects]:
    """Run one operator action against the stored match.

    Malformed events raise ``ValueError``. Actions the engine rejects leave the
    record untouched and report ``Effects.changed == False``.
    """

    record = await match_store.get(session, mid)
    if record is None:
        raise MatchNotFound(mid)

    state = match_store.state_from_record(record)
    new_state, effects = table_tennis.apply(event, state, now=now)
    if not effects.changed:
        logger.debug("Ignored %s on match %s (%s)", event.get("type"), mid, state["status"])
        return record, effects

    if event.get("type") == "LAUNCH_MATCH":
        # Advisory only: nothing stops a concurrent launch between check and write.
        active = await find_active_match(
            session,
            record.table_number,
            day=record.date,
            encounter_id=record.encounter_id,
            exclude=mid,
        )
        if active:
            raise TableBusy(record.table_number, active)

    changes = {key: new_state[key] for key in match_store.ENGINE_FIELDS if new_state[key] != state[key]}
    record = await match_store.put(
        session, mid, changes, expected_version=expected_version, action=event
    )

    if effects.winner:
        won = new_state["setsWon"]
        logger.info(
            "Match %s finished, side %s wins %s-%s",
            mid,
            effects.winner,
            won["A"],
            won["B"],
        )
    return record, effects


async def list_matches(
    session: AsyncSession,
    *,
    table: int | None = None,
    day: str | None = None,
    encounter_id: str | None = None,
    status: str | None = None,
) -> list[MatchRecord]:
    stmt = select(MatchRecord)
    if table is not None:
        stmt = stmt.where(MatchRecord.table_number == table)
    if day:
        stmt = stmt.where(MatchRecord.date == day)
    if encounter_id:
        stmt = stmt.where(MatchRecord.encounter_id == encounter_id)
    if status:
        stmt = stmt.where(MatchRecord.status == status)
    stmt = stmt.order_by(
        MatchRecord.table_number,
        MatchRecord.date,
        MatchRecord.scheduled_time,
        MatchRecord.match_number,
        MatchRecord.id,
    )
    return list((await session.execute(stmt)).scalars().all())


async def auto_mark_finished_matches(
    session: AsyncSession,
    encounter_id: str,
    *,
    now: datetime | None = None,
    grace_hours: float = AUTO_FINISH_GRACE_HOURS,
) -> int:
    """Close waiting matches whose scheduled time is long past.

    Matches already in progress, finished or cancelled are left alone, as are
    matches without a parseable date and scheduled time.

    The engine is bypassed: a never-launched match ends up ``finished`` with
    empty ``sets`` and no ``startTime``. This is the one path where a match
    leaves ``waiting`` without a set.
    """

    now = now or utcnow()
    cutoff = timedelta(hours=grace_hours)
    waiting = await list_matches(
        session, encounter_id=encounter_id, status=table_tennis.WAITING
    )

    updated = 0
    for record in waiting:
        scheduled = parse_scheduled_time(record.date, record.scheduled_time)
        if scheduled is None or now - scheduled <= cutoff:
            continue
        await match_store.put(
            session,
            record.id,
            {"status": table_tennis.FINISHED},
            action={"type": "AUTO_FINISH"},
        )
        updated += 1
        logger.info(
            "Match %s marked finished (scheduled %s %s)",
            record.id,
            record.date,
            record.scheduled_time,
        )
    return updated
