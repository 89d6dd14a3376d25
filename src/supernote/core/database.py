"""
Database Configuration

Async SQLAlchemy 2.0 setup with a bounded connection pool.
Uses asyncpg as the PostgreSQL driver for non-blocking I/O.

Design:
    - All four pool bounds come from Settings and are applied here only.
    - Idle connections past DB_POOL_MAX_CONN_IDLE_TIME are discarded at
      checkout and replaced with a fresh connection.
    - The persistent floor (DB_POOL_MIN_CONNS) is opened at startup.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import AsyncExitStack
from typing import Any

from sqlalchemy import event, exc, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from supernote.core.config import Settings
from supernote.models import Base

logger = logging.getLogger(__name__)

_CHECKED_IN_AT = "checked_in_at"


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine and its connection pool.

    Mapping of settings to QueuePool arguments:
        DB_POOL_MIN_CONNS         -> pool_size (connections kept open)
        DB_POOL_MAX_CONNS         -> pool_size + max_overflow
        DB_POOL_MAX_CONN_LIFETIME -> pool_recycle
        DB_POOL_MAX_CONN_IDLE_TIME -> checkout hook (see idle_checkout_guard)
    """
    # pool_size=0 means "unbounded" for QueuePool, keep at least one
    pool_size = max(settings.DB_POOL_MIN_CONNS, 1)
    max_overflow = max(settings.DB_POOL_MAX_CONNS - pool_size, 0)

    engine = create_async_engine(
        settings.ASYNC_DATABASE_URL,
        echo=False,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=settings.DB_POOL_MAX_CONN_LIFETIME,
        pool_pre_ping=True,
    )
    _discard_idle_connections(engine, settings.DB_POOL_MAX_CONN_IDLE_TIME)

    logger.info(
        "Database engine created (pool: min=%d max=%d lifetime=%ds idle=%ds)",
        pool_size,
        pool_size + max_overflow,
        settings.DB_POOL_MAX_CONN_LIFETIME,
        settings.DB_POOL_MAX_CONN_IDLE_TIME,
    )
    return engine


def stamp_checkin(dbapi_connection: Any, connection_record: Any) -> None:
    """Pool ``checkin`` listener: remember when the connection went idle."""
    connection_record.info[_CHECKED_IN_AT] = time.monotonic()


def idle_checkout_guard(max_idle_seconds: float) -> Callable[[Any, Any, Any], None]:
    """
    Build a pool ``checkout`` listener rejecting connections idle too long.

    Raising DisconnectionError makes the pool invalidate the record and
    retry the checkout with a new connection.
    """

    def _check_idle(
        dbapi_connection: Any, connection_record: Any, connection_proxy: Any
    ) -> None:
        checked_in_at = connection_record.info.pop(_CHECKED_IN_AT, None)
        if checked_in_at is None:
            return
        idle_for = time.monotonic() - checked_in_at
        if idle_for > max_idle_seconds:
            raise exc.DisconnectionError(
                f"Connection idle for {idle_for:.0f}s (max {max_idle_seconds}s)"
            )

    return _check_idle


def _discard_idle_connections(engine: AsyncEngine, max_idle_seconds: float) -> None:
    event.listen(engine.sync_engine, "checkin", stamp_checkin)
    event.listen(engine.sync_engine, "checkout", idle_checkout_guard(max_idle_seconds))


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the engine's pool."""
    # expire_on_commit=False: prevents implicit I/O after commit when accessing attributes
    return async_sessionmaker(engine, expire_on_commit=False)


async def warm_pool(engine: AsyncEngine, size: int) -> None:
    """
    Open ``size`` connections concurrently so the pool floor is ready.

    Connections are held together until all are open, then returned to the
    pool, where QueuePool keeps up to ``pool_size`` of them. If any fails,
    the ones already open are released and the first error is raised.
    """
    if size <= 0:
        return
    async with AsyncExitStack() as stack:
        opened = await asyncio.gather(
            *(stack.enter_async_context(engine.connect()) for _ in range(size)),
            return_exceptions=True,
        )
        for result in opened:
            if isinstance(result, BaseException):
                raise result
        await asyncio.gather(*(conn.execute(text("SELECT 1")) for conn in opened))
    logger.info("Connection pool warmed with %d connections", size)


async def init_schema(engine: AsyncEngine) -> None:
    """
    Create the pgvector extension and the notes table if missing.

    Not a migration tool: existing tables are left untouched.
    """
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")


__all__ = [
    "create_engine",
    "create_session_factory",
    "init_schema",
    "warm_pool",
]
