# Test type: Configuration
# Validation to be executed: Shared fixtures for all test modules
# Command: pytest test/ -v (this file is auto-loaded by pytest)

"""Shared pytest fixtures for the Rental Tax Estimator test suite."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from app.database import Database
from app.dependencies import get_record_store
from app.main import app
from app.services.identity import Identity, RequestOrigin
from app.services.quote_service import reset_persist_failures
from app.services.record_store import InMemoryRecordStore, SqlRecordStore

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_fault_counter():
    reset_persist_failures()
    yield
    reset_persist_failures()


# ── Stores ───────────────────────────────────────────────────────────────

@pytest.fixture
def memory_store():
    return InMemoryRecordStore()


@pytest.fixture(params=["memory", "sql"])
async def store(request):
    """Each contract test runs against both store implementations."""
    if request.param == "memory":
        yield InMemoryRecordStore()
        return
    database = Database(SQLITE_MEMORY_URL)
    assert await database.connect()
    yield SqlRecordStore(database)
    await database.dispose()


@pytest.fixture
def unavailable_store():
    """SQL store whose database was never connected."""
    return SqlRecordStore(Database(SQLITE_MEMORY_URL))


# ── HTTP clients ─────────────────────────────────────────────────────────

async def _client_for(store):
    app.dependency_overrides[get_record_store] = lambda: store
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def client(memory_store):
    """Async HTTP client bound to the FastAPI app with an in-memory store."""
    async for ac in _client_for(memory_store):
        yield ac


@pytest.fixture
async def unavailable_client(unavailable_store):
    """Async HTTP client whose record store cannot be reached."""
    async for ac in _client_for(unavailable_store):
        yield ac


# ── Sample data fixtures ─────────────────────────────────────────────────

@pytest.fixture
def anon():
    return Identity.anonymous("client-a")


@pytest.fixture
def user():
    return Identity.authenticated("openid-u")


@pytest.fixture
def origin():
    return RequestOrigin(user_agent="pytest", source_address="10.0.0.1")
