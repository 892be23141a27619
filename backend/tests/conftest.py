"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from models.base import Base
from services.autosave import DebouncedAutosave

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Must be set before any app import triggers Settings validation
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)

# Long enough that no autosave timer fires during a test unless the test wants it to
TEST_AUTOSAVE_DELAY = 60.0


@pytest.fixture(scope="session")
def database_url() -> str:
    """Get the database URL for tests (one in-memory SQLite database per engine)."""
    return TEST_DATABASE_URL


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine for testing."""
    engine = create_async_engine(
        database_url,
        echo=False,
        # One shared connection, otherwise every connection gets an empty database
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # aiosqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_connection(async_engine: AsyncEngine) -> AsyncGenerator[AsyncConnection]:
    """
    Create a connection with a transaction that will be rolled back after the test.

    This provides test isolation - each test runs in its own transaction
    that is rolled back, so tests don't affect each other.
    """
    async with async_engine.connect() as connection:
        transaction = await connection.begin()
        try:
            yield connection
        finally:
            await transaction.rollback()


@pytest.fixture
def session_factory(db_connection: AsyncConnection) -> async_sessionmaker:
    """
    Session factory bound to the test transaction.

    Uses begin_nested() for savepoints, allowing the session's flush/commit
    to work within our outer test transaction.
    """
    return async_sessionmaker(
        bind=db_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest.fixture
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession]:
    """Create an async session bound to the test transaction."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def autosave(session_factory: async_sessionmaker) -> AsyncGenerator[DebouncedAutosave]:
    """Autosave registry whose timer-fired writes run inside the test transaction."""
    registry = DebouncedAutosave(session_factory, delay=TEST_AUTOSAVE_DELAY)
    yield registry
    await registry.aclose()


@pytest.fixture
async def client(
    db_session: AsyncSession,
    autosave: DebouncedAutosave,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session and autosave overrides."""
    # Clear cached settings and services so they pick up the test environment
    from api.dependencies import get_history_service, get_revert_service
    from core.config import get_settings

    get_settings.cache_clear()
    get_history_service.cache_clear()
    get_revert_service.cache_clear()

    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    # ASGITransport does not run the lifespan, so install the registry directly
    app.state.autosave = autosave

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
