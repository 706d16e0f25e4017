"""Database setup with SQLAlchemy async."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from responder_dispatch.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

REQUIRED_TABLES = (
    "emergencies",
    "responders",
    "emergency_assignments",
    "alert_escalations",
    "iot_devices",
    "device_alerts",
    "hospitals",
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create tables from the ORM metadata (development and tests)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_db_ready() -> None:
    """
    Verify database connectivity and expected schema.

    Raises RuntimeError naming any table the migrations have not created.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

        columns = ", ".join(f"to_regclass('public.{name}') AS {name}" for name in REQUIRED_TABLES)
        tables = await conn.execute(text(f"SELECT {columns}"))
        row = tables.first()

        missing = [
            name
            for name in REQUIRED_TABLES
            if row is None or getattr(row, name) is None
        ]
        if missing:
            raise RuntimeError(
                f"Database schema is missing tables: {', '.join(missing)} "
                "(run database init or check migrations)."
            )


def new_id() -> str:
    """Primary key for new rows (UUID4 text)."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)
