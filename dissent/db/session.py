"""Async database engine and session factory for the knowledge record store.

Usage:
    from dissent.db.session import create_session_factory, session_scope

    factory = create_session_factory(settings.database_url)
    async with session_scope(factory) as session:
        result = await session.execute(select(KnowledgeRecordRow))

Each operation must get its own session from the factory. AsyncSession is NOT
safe to share across concurrent coroutines.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def create_engine(database_url: str) -> AsyncEngine:
    """Async engine for *database_url*; pooled unless the URL is SQLite."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False)
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def create_session_factory(
    database_url: str | None = None,
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to *engine*, or to a new engine for *database_url*.

    expire_on_commit=False keeps ORM objects readable after the session closes.
    """
    if engine is None:
        if database_url is None:
            raise ValueError("either database_url or engine is required")
        engine = create_engine(database_url)
    return async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def session_scope(factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Yield a fresh AsyncSession, closed when the context exits.

    Example:
        async with session_scope(factory) as session:
            await session.execute(...)
    """
    async with factory() as session:
        yield session
