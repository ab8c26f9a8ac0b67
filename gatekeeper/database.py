"""Database session management."""

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from gatekeeper.config import get_settings


def enable_sqlite_foreign_keys(async_engine: AsyncEngine) -> None:
    """Turn on foreign key enforcement (and ON DELETE CASCADE) for every SQLite connection."""
    if async_engine.dialect.name != "sqlite":
        return

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


settings = get_settings()
engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)
enable_sqlite_foreign_keys(engine)
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def utc_now() -> datetime:
    """Current time as a naive UTC datetime, the form stored in every column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session."""
    async with SessionLocal() as db:
        yield db
