"""Pytest fixtures for responder dispatch tests."""

import os

# Settings are cached on first import; keep the limiter out of the way in tests.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REDISPATCH_ENABLED", "false")

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from responder_dispatch.config import Settings
from responder_dispatch.database import Base, get_db, new_id
from responder_dispatch.main import app
from responder_dispatch.models import Hospital, Incident, IoTDevice, Responder

# In-memory SQLite; the schema only uses portable column types
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Incident and two responders around Dar es Salaam, as "(lon,lat)"
INCIDENT_POINT = "(39.2083,-6.1725)"
NEAR_POINT = "(39.20,-6.17)"
FAR_POINT = "(39.30,-6.20)"


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        storage_timeout_seconds=5.0,
        storage_max_retries=1,
        rate_limit_enabled=False,
        redispatch_enabled=False,
        debug=True,
    )


@pytest_asyncio.fixture
async def async_engine():
    """Create async engine with the full schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    session_maker = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def add_incident(db_session: AsyncSession) -> Callable[..., Awaitable[Incident]]:
    """Insert an incident; defaults to a reported incident at INCIDENT_POINT."""

    async def _add(**fields: Any) -> Incident:
        values: dict[str, Any] = {
            "id": new_id(),
            "type": "medical",
            "coordinates": INCIDENT_POINT,
            "priority": 3,
            "status": "reported",
        }
        values.update(fields)
        incident = Incident(**values)
        db_session.add(incident)
        await db_session.commit()
        return incident

    return _add


@pytest.fixture
def add_responder(db_session: AsyncSession) -> Callable[..., Awaitable[Responder]]:
    """Insert a responder; defaults to an available ambulance at NEAR_POINT."""

    async def _add(**fields: Any) -> Responder:
        values: dict[str, Any] = {
            "id": new_id(),
            "name": "Ambulance 1",
            "type": "ambulance",
            "status": "available",
            "coordinates": NEAR_POINT,
        }
        values.update(fields)
        responder = Responder(**values)
        db_session.add(responder)
        await db_session.commit()
        return responder

    return _add


@pytest.fixture
def add_device(db_session: AsyncSession) -> Callable[..., Awaitable[IoTDevice]]:
    async def _add(**fields: Any) -> IoTDevice:
        values: dict[str, Any] = {
            "id": new_id(),
            "device_id": "crash-sensor-01",
            "name": "Crash sensor 01",
            "type": "vehicle",
        }
        values.update(fields)
        device = IoTDevice(**values)
        db_session.add(device)
        await db_session.commit()
        return device

    return _add


@pytest.fixture
def add_hospital(db_session: AsyncSession) -> Callable[..., Awaitable[Hospital]]:
    async def _add(**fields: Any) -> Hospital:
        values: dict[str, Any] = {
            "id": new_id(),
            "name": "Muhimbili National Hospital",
            "total_beds": 40,
            "available_beds": 12,
        }
        values.update(fields)
        hospital = Hospital(**values)
        db_session.add(hospital)
        await db_session.commit()
        return hospital

    return _add


@pytest.fixture
def sample_datetime() -> datetime:
    """Sample datetime for testing."""
    return datetime(2026, 10, 17, 10, 0, 0, tzinfo=UTC)
