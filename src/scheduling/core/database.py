"""Async SQLAlchemy engine, declarative base and session factory.

``get_session`` is the ``session_factory`` handed to ``MeetingRepository``;
tests pass their own factory bound to an in-memory SQLite engine.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.scheduling.config import get_settings

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    pass


def get_engine() -> AsyncEngine:
    """Engine for ``DATABASE_URL``, created on first use."""
    global _engine, _sessionmaker
    if _engine is None:
        _engine = create_async_engine(get_settings().DATABASE_URL, pool_pre_ping=True)
        _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    get_engine()
    async with _sessionmaker() as session:
        yield session


async def init_db() -> None:
    """Create the meetings table if it is missing."""
    from src.scheduling.meetings import models  # noqa: F401  registers MeetingModel

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
