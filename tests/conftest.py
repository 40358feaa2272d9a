import os

# settings are read at import time
os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("REALTIME_ENABLED", "false")
os.environ.setdefault("INTERNAL_ADMIN_KEY", "test-internal")

import pytest_asyncio
import httpx

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

# Import Base + all models so metadata is complete
from koda.models import Base

from koda.main import app
from koda.core.db import enable_sqlite_savepoints, get_db


pytest_plugins = ["fixtures_seed"]


def _test_db_url() -> str:
    # in-memory SQLite unless a real database is provided
    return os.getenv("DATABASE_URL_TEST", "sqlite+aiosqlite://")


@pytest_asyncio.fixture
async def async_engine():
    url = _test_db_url()
    if url.startswith("sqlite"):
        engine = create_async_engine(url, poolclass=StaticPool)
        enable_sqlite_savepoints(engine)
    else:
        engine = create_async_engine(url, pool_pre_ping=True)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine):
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False, class_=AsyncSession)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession):
    """
    HTTP client that uses the test DB session via dependency override.
    """
    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
