"""Async database engine and session factory."""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def serialize_sqlite_writes(async_engine: AsyncEngine) -> None:
    """Open every SQLite transaction with ``BEGIN IMMEDIATE``.

    SQLite ignores ``FOR UPDATE``, so the practice-row lock taken before a
    slot claim has no effect there. The database write lock is taken at
    BEGIN instead, which serialises concurrent bookings. No-op on other
    dialects.
    """
    if async_engine.dialect.name != "sqlite":
        return

    sync_engine = async_engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # The driver would otherwise emit its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)
serialize_sqlite_writes(engine)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for one request."""
    async with AsyncSessionLocal() as session:
        yield session
