"""Async database engine and session factory for the personnel store.

Connection details come from ``DatabaseSettings`` (``DB_URL`` etc.).
SQLite URLs (used by tests) skip the pool sizing options.
"""

from __future__ import annotations

from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings


def _engine_options() -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.db.echo, "future": True}
    if not settings.db.url.startswith("sqlite"):
        options["pool_size"] = settings.db.pool_size
        options["max_overflow"] = settings.db.max_overflow
        options["pool_pre_ping"] = True
    return options


engine: AsyncEngine = create_async_engine(settings.db.url, **_engine_options())

AsyncSessionMaker = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """Request-scoped session; ``api.get_store`` wraps it in a ``SqlPersonnelStore``."""

    async with AsyncSessionMaker() as session:
        yield session
