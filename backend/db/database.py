"""Async engine and session factory.

The module-level ``engine`` and ``AsyncSessionLocal`` are what the app
uses; tests swap them for a per-test in-memory database built with the
same factory functions.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import get_settings


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.endswith("://"))


def create_db_engine(url: Optional[str] = None) -> AsyncEngine:
    """Engine for ``url`` (defaults to DATABASE_URL).

    An in-memory SQLite database exists only as long as its connection, so
    it is pinned to a single shared connection. Server databases get a
    pre-pinged connection pool sized from settings.
    """
    settings = get_settings()
    url = url or settings.DATABASE_URL
    options: dict = {"echo": settings.SQLALCHEMY_ECHO}

    if _is_memory_sqlite(url):
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    elif not url.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return create_async_engine(url, **options)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows stay readable after commit; behaviors hold on to them across flushes
    return async_sessionmaker(bind, expire_on_commit=False, autoflush=False)


engine = create_db_engine()
AsyncSessionLocal = create_session_factory(engine)


async def init_db() -> None:
    """Create missing tables at startup."""
    import db.models  # noqa: F401  registers every model on Base.metadata
    from db.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
