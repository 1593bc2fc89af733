import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import redis.asyncio as redis

from ..services import match_store


router = APIRouter()
logger = logging.getLogger(__name__)


async def _relay(ws: WebSocket, channel: str) -> None:
    accepted = asyncio.Event()

    async def forward(message: dict) -> None:
        await accepted.wait()
        await ws.send_json(message)

    # Subscribe before accepting so nothing published right after the
    # handshake is missed.
    try:
        unsubscribe = await match_store.subscribe_channel(channel, forward)
    except redis.ConnectionError:
        logger.warning("Redis unavailable; refusing viewer on %s", channel)
        await ws.close()
        return

    await ws.accept()
    accepted.set()
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await unsubscribe()


@router.websocket("/matches/{mid}/stream")
async def match_stream(ws: WebSocket, mid: str) -> None:
    """Stream snapshots of one match."""
    await _relay(ws, match_store.match_channel(mid))


@router.websocket("/tables/{table}/stream")
async def table_stream(ws: WebSocket, table: int) -> None:
    """Stream snapshots of every match played on a table (TV overlay)."""
    await _relay(ws, match_store.table_channel(table))
