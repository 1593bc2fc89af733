import os
import sys
import asyncio

import fakeredis.aioredis
import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Honour any externally provided DATABASE_URL but default to in-memory SQLite.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
# app.main refuses to import without an explicit CORS allow-list.
os.environ.setdefault("ALLOWED_ORIGINS", "http://localhost:3000")

from app import db, models  # noqa: F401,E402
from app.exceptions import DomainException  # noqa: E402
from app import main, rate_limit  # noqa: E402
from app.services import match_store  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Route every publish/subscribe through an in-process fake Redis."""

    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(match_store, "redis_client", client)
    yield client


@pytest.fixture(autouse=True)
def no_rate_limits(monkeypatch):
    monkeypatch.setattr(rate_limit.limiter, "enabled", False)
    yield


@pytest.fixture()
def session_maker():
    """Fresh in-memory database with every table created."""

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async def init_models():
        async with engine.begin() as conn:
            await conn.run_sync(db.Base.metadata.create_all)

    asyncio.run(init_models())
    yield maker
    asyncio.run(engine.dispose())


def build_app(*routers) -> FastAPI:
    """Bare application with the production error handlers."""

    app = FastAPI()
    app.add_exception_handler(DomainException, main.domain_exception_handler)
    app.add_exception_handler(HTTPException, main.http_exception_handler)
    app.state.limiter = rate_limit.limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit.rate_limit_handler)
    for router in routers:
        app.include_router(router)
    return app


@pytest.fixture()
def client(session_maker):
    from app.db import get_session
    from app.routers import matches, milestones, streams, tables

    async def override_get_session():
        async with session_maker() as session:
            yield session

    app = build_app(matches.router, milestones.router, tables.router, streams.router)
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as test_client:
        yield test_client
