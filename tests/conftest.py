"""Shared pytest fixtures: a file-backed SQLite store, a dict-backed Redis mock and an HTTP client."""

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient

from fuselink.config import Settings
from fuselink.database import create_engine
from fuselink.dependencies import RequestContext, ServiceManager, get_service_manager
from fuselink.link_service import LinkService
from fuselink.main import app
from fuselink.store import LinkStore


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'links.db'}",
        REDIS_URL="redis://localhost:6379/15",
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def cache_entries() -> dict[str, str]:
    """Backing store of the mocked Redis client, keyed like the real cache."""
    return {}


@pytest.fixture
def cache_client(cache_entries: dict[str, str]) -> AsyncMock:
    client = AsyncMock(spec=redis.Redis)

    def _setex(key, ttl, value):
        cache_entries[key] = value
        return True

    def _delete(*keys):
        return sum(1 for key in keys if cache_entries.pop(key, None) is not None)

    client.get = AsyncMock(side_effect=lambda key: cache_entries.get(key))
    client.setex = AsyncMock(side_effect=_setex)
    client.delete = AsyncMock(side_effect=_delete)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock(return_value=None)
    return client


@pytest_asyncio.fixture
async def manager(settings: Settings, cache_client: AsyncMock) -> AsyncGenerator[ServiceManager, None]:
    manager = ServiceManager(settings, create_engine(settings), cache_client)
    await manager.startup()
    yield manager
    await manager.cleanup()


@pytest_asyncio.fixture
async def make_service(manager: ServiceManager):
    """Factory of LinkService instances, each with its own session like a separate request."""
    sessions = []

    def _make(clock=None) -> LinkService:
        session = manager.session_factory()
        sessions.append(session)
        ctx = RequestContext(database=session, service_manager=manager)
        return LinkService.from_context(ctx, clock=clock)

    yield _make

    for session in sessions:
        await session.close()


@pytest.fixture
def service(make_service) -> LinkService:
    return make_service()


@pytest_asyncio.fixture
async def store(manager: ServiceManager) -> AsyncGenerator[LinkStore, None]:
    """Independent store session for inspecting rows behind the service's back."""
    async with manager.session_factory() as session:
        yield LinkStore(session)


@pytest_asyncio.fixture
async def client(manager: ServiceManager) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_service_manager] = lambda: manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
