"""Async engine, session factory and table bootstrap for the payments store."""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from connect_payments.config import settings
from connect_payments.models.payment import Base


def build_engine(url: str) -> AsyncEngine:
    """Create an engine; SQLite connections get foreign key enforcement switched on."""
    db_engine = create_async_engine(url, echo=False)

    if db_engine.dialect.name == "sqlite":
        @event.listens_for(db_engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return db_engine


def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Records are read back after commit (API responses, audit trail).
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)
async_session = session_factory(engine)


async def create_tables(db_engine: AsyncEngine) -> None:
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db():
    """Create all tables. Safe to call multiple times (CREATE IF NOT EXISTS)."""
    await create_tables(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session
