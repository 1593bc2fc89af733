"""Match records: read, conditional write and change fan-out.

Writes go to the database; every persisted change is then published on Redis
so TV overlays and embedded viewers pick it up without polling. Publishing is
best effort, a Redis outage never fails a scoring write.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import uuid
from contextlib import suppress
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import REDIS_URL
from ..exceptions import MatchNotFound, MatchVersionConflict
from ..models import MatchAction, MatchRecord
from ..scoring import table_tennis
from ..schemas import MatchOut, PlayerOut
from ..time_utils import coerce_utc, utcnow

logger = logging.getLogger(__name__)

redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# engine state key -> MatchRecord attribute
ENGINE_FIELDS = {
    "sets": "sets",
    "setsWon": "sets_won",
    "status": "status",
    "startTime": "start_time",
    "sideFlipped": "side_flipped",
}

OnChange = Callable[[dict], Any]
Unsubscribe = Callable[[], Awaitable[None]]


def match_channel(mid: str) -> str:
    return f"match:{mid}"


def table_channel(table: int) -> str:
    return f"table:{table}"


def state_from_record(record: MatchRecord) -> dict:
    """Build the scoring engine state held by ``record``."""
    return {
        "sets": [{"A": int(s["A"]), "B": int(s["B"])} for s in (record.sets or [])],
        "setsWon": dict(record.sets_won or {"A": 0, "B": 0}),
        "status": record.status or table_tennis.WAITING,
        "startTime": coerce_utc(record.start_time),
        "sideFlipped": bool(record.side_flipped),
    }


def _player_out(record: MatchRecord, side: str) -> PlayerOut:
    details = record.feed_details if isinstance(record.feed_details, dict) else {}
    members = (details.get("members") or {}).get(side) or []
    if side == "A":
        return PlayerOut(name=record.player1_name, country=record.player1_country, members=members)
    return PlayerOut(name=record.player2_name, country=record.player2_country, members=members)


def to_match_out(record: MatchRecord) -> MatchOut:
    state = state_from_record(record)
    view = table_tennis.summary(state)
    return MatchOut(
        id=record.id,
        feed_match_id=record.feed_match_id,
        championship_id=record.championship_id,
        encounter_id=record.encounter_id,
        date=record.date,
        table=record.table_number,
        event_key=record.event_key,
        match_desc=record.match_desc,
        scheduled_time=record.scheduled_time,
        match_number=record.match_number,
        type=record.match_type or "single",
        player1=_player_out(record, "A"),
        player2=_player_out(record, "B"),
        sets=view["sets"],
        sets_won=view["setsWon"],
        display_sets_won=view["displaySetsWon"],
        status=view["status"],
        start_time=view["startTime"],
        side_flipped=view["sideFlipped"],
        left_side="B" if view["sideFlipped"] else "A",
        can_launch_set=view["canLaunchSet"],
        can_terminate=view["canTerminate"],
        version=record.version or 0,
    )


def snapshot(record: MatchRecord) -> dict:
    """JSON-ready view of ``record`` as pushed to subscribers."""
    return to_match_out(record).model_dump(mode="json", by_alias=True)


async def get(session: AsyncSession, mid: str) -> MatchRecord | None:
    return await session.get(MatchRecord, mid)


async def put(
    session: AsyncSession,
    mid: str,
    changes: dict,
    *,
    expected_version: int | None = None,
    action: dict | None = None,
) -> MatchRecord:
    """Apply a partial update of engine fields and publish the result.

    When ``expected_version`` is given the write only happens if the stored
    record is still at that version; otherwise the last write wins.
    """

    unknown = set(changes) - set(ENGINE_FIELDS)
    if unknown:
        raise ValueError(f"unknown match fields: {sorted(unknown)}")

    values = {ENGINE_FIELDS[key]: value for key, value in changes.items()}
    values["version"] = MatchRecord.version + 1
    values["updated_at"] = utcnow()

    stmt = update(MatchRecord).where(MatchRecord.id == mid)
    if expected_version is not None:
        stmt = stmt.where(MatchRecord.version == expected_version)
    result = await session.execute(
        stmt.values(**values).execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await session.rollback()
        current = await session.get(MatchRecord, mid, populate_existing=True)
        if current is None:
            raise MatchNotFound(mid)
        raise MatchVersionConflict(mid, expected_version, current.version)

    record = await session.get(MatchRecord, mid, populate_existing=True)
    if action is not None:
        session.add(
            MatchAction(
                id=uuid.uuid4().hex,
                match_id=mid,
                type=str(action.get("type")),
                payload=action,
                version=record.version,
            )
        )
    await session.commit()

    await publish(record)
    return record


async def broadcast(mid: str, message: dict, table: int | None = None) -> None:
    """Publish ``message`` to the viewers of a match and of its table."""
    payload = json.dumps(message)
    channels = [match_channel(mid)]
    if table is not None:
        channels.append(table_channel(table))
    try:
        for channel in channels:
            await redis_client.publish(channel, payload)
    except redis.RedisError:
        logger.warning("Could not publish update for match %s", mid, exc_info=True)


async def publish(record: MatchRecord) -> None:
    """Push the current snapshot of ``record`` to its viewers."""
    await broadcast(record.id, snapshot(record), record.table_number)


async def subscribe_channel(channel: str, on_change: OnChange) -> Unsubscribe:
    """Call ``on_change`` with every snapshot published on ``channel``.

    Returns a coroutine function that stops the subscription.
    """

    pubsub = redis_client.pubsub()
    await pubsub.subscribe(channel)

    async def deliver(message: dict) -> None:
        try:
            result = on_change(message)
            if inspect.isawaitable(result):
                await result
        except Exception:
            # The subscription outlives a failing callback.
            logger.warning("Subscriber on %s failed", channel, exc_info=True)

    async def listen() -> None:
        try:
            async for msg in pubsub.listen():
                if msg.get("type") != "message":
                    continue
                await deliver(json.loads(msg["data"]))
        except redis.ConnectionError:
            logger.warning("Lost Redis subscription on %s", channel)

    task = asyncio.create_task(listen())

    async def unsubscribe() -> None:
        task.cancel()
        try:
            with suppress(asyncio.CancelledError, redis.RedisError):
                await task
        finally:
            try:
                with suppress(redis.RedisError):
                    await pubsub.unsubscribe(channel)
            finally:
                await pubsub.aclose()

    return unsubscribe


async def subscribe(mid: str, on_change: OnChange) -> Unsubscribe:
    return await subscribe_channel(match_channel(mid), on_change)
