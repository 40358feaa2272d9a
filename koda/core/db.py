import asyncio
import logging
from typing import AsyncIterator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from koda.core.config import settings


log = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None
_init_lock = asyncio.Lock()


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    The sqlite driver begins transactions lazily, so a SAVEPOINT opened first
    becomes the outer transaction and its RELEASE commits. Take over BEGIN so
    nested transactions nest.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


async def get_engine() -> AsyncEngine:
    """
    Shared engine, created on first use.

    Concurrent first callers wait on one lock and reuse the same attempt.
    A failed connection check clears the cache so the next call tries again.
    """
    global _engine, _sessionmaker
    if _engine is not None:
        return _engine

    async with _init_lock:
        if _engine is not None:
            return _engine

        engine = create_async_engine(settings.database_url, pool_pre_ping=True)
        if engine.dialect.name == "sqlite":
            enable_sqlite_savepoints(engine)
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            log.exception("database connection failed")
            await engine.dispose()
            raise

        _engine = engine
        _sessionmaker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
        log.info("database engine initialised")
        return _engine


async def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    await get_engine()
    if _sessionmaker is None:
        # reset_engine() ran between the two steps
        raise RuntimeError("database engine was reset during initialisation")
    return _sessionmaker


async def get_db() -> AsyncIterator[AsyncSession]:
    Session = await get_sessionmaker()
    async with Session() as session:
        yield session


async def reset_engine() -> None:
    global _engine, _sessionmaker
    async with _init_lock:
        if _engine is not None:
            await _engine.dispose()
        _engine = None
        _sessionmaker = None
