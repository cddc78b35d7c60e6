import asyncio
import os
from pathlib import Path
from typing import Any, AsyncGenerator, Callable, Generator
from unittest.mock import AsyncMock, MagicMock

# Configure the environment before any signaling module reads it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GUEST_SWEEP_INTERVAL", "0")
os.environ.setdefault("PULL_TIMEOUT", "0.2")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from signaling.config import Settings
from signaling.context import ServiceContext
from signaling.database import Base, get_db
from signaling.main import create_app
from signaling.models import db as db_models  # noqa: F401  registers the tables

NOW = 1_700_000_000


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(pull_timeout=0.05, guest_sweep_interval=0)


@pytest.fixture
def context(settings: Settings, clock: FakeClock) -> ServiceContext:
    """Service context with a fake clock for service level tests."""
    return ServiceContext(settings=settings, clock=clock)


@pytest.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def test_db(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Database session for integration tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def mock_db() -> AsyncGenerator[AsyncMock, None]:
    """Create a mock database session for unit tests."""
    mock_session = AsyncMock()
    mock_session.commit = AsyncMock()
    mock_session.rollback = AsyncMock()
    mock_session.close = AsyncMock()
    mock_session.refresh = AsyncMock()
    mock_session.execute = AsyncMock()
    mock_session.flush = AsyncMock()
    mock_session.add = MagicMock()  # add is sync, not async

    yield mock_session


def _file_engine(path: Path) -> AsyncEngine:
    # NullPool: every connection is opened on the loop that uses it
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


@pytest.fixture
async def file_session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory on a SQLite file; every session gets its own connection."""
    engine = _file_engine(tmp_path / "sessions.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def client(tmp_path: Path) -> Generator[TestClient, Any, None]:
    """Test client for the FastAPI app backed by a fresh SQLite file."""
    engine = _file_engine(tmp_path / "signaling.db")

    async def create_schema() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(create_schema())
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app = create_app(Settings(pull_timeout=0.2, guest_sweep_interval=0))
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def user_headers() -> Callable[..., dict]:
    """Build identity headers for the HTTP API."""

    def build(user_id: str = "", session_id: str = "") -> dict:
        headers = {}
        if user_id:
            headers["X-User-Id"] = user_id
        if session_id:
            headers["X-Session-Id"] = session_id
        return headers

    return build
