import asyncio
import json
import logging

import redis.asyncio as redis
import ulid

from app.services import match_store


def test_broadcast_connection_error(monkeypatch, caplog):
    async def fake_publish(channel, message):
        raise redis.ConnectionError("unavailable")
    monkeypatch.setattr(match_store.redis_client, "publish", fake_publish)

    mid = str(ulid.new())

    async def call():
        await match_store.broadcast(mid, {"foo": "bar"}, table=2)

    with caplog.at_level(logging.WARNING):
        asyncio.run(call())
    assert f"Could not publish update for match {mid}" in caplog.text


def test_broadcast_targets_match_and_table_channels(monkeypatch):
    sent = []

    async def fake_publish(channel, message):
        sent.append((channel, json.loads(message)))
    monkeypatch.setattr(match_store.redis_client, "publish", fake_publish)

    asyncio.run(match_store.broadcast("m1", {"n": 1}, table=3))
    asyncio.run(match_store.broadcast("m2", {"n": 2}))

    assert sent == [
        ("match:m1", {"n": 1}),
        ("table:3", {"n": 1}),
        ("match:m2", {"n": 2}),
    ]
