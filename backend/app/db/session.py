"""
Async engine and per-request session.

Every request gets its own AsyncSession. The session commits when the
endpoint returns and rolls back on any exception, so a failed or
timed-out mutation never leaves a half-written Event, Registration or
Certificate behind. Domain events queued during the request are only
published after the commit succeeds.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings
from app.services.publisher import discard_events, publish_pending_events

settings = get_settings()


def build_engine(url: str):
    if url.startswith("sqlite"):
        # SQLite serialises writers itself; wait for the lock instead of failing fast
        return create_async_engine(url, connect_args={"timeout": 30})
    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope(factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Commit on success, roll back on any error, always close."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            discard_events(session)
            raise
        await publish_pending_events(session)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with session_scope(SessionLocal) as session:
        yield session
