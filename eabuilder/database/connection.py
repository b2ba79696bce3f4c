"""
EA Builder Database Connection Management

One lazily created async engine per process. PostgreSQL (asyncpg) gets a
sized connection pool; SQLite (aiosqlite) gets a busy timeout and enforced
foreign keys so version rows cascade with their model.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from ..config.settings import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options() -> dict:
    db = settings.database
    options: dict = {"echo": db.echo, "pool_pre_ping": True}
    if db.is_sqlite:
        options["connect_args"] = {"timeout": 30}
    else:
        options.update(
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
        )
    return options


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it from settings on first use."""
    global _engine

    if _engine is None:
        _engine = create_async_engine(settings.database.async_url, **_engine_options())
        if settings.database.is_sqlite:
            event.listen(_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        logger.info(f"Database engine created for {_engine.url.render_as_string(hide_password=True)}")

    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        # Objects stay usable after commit; services flush explicitly
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Services commit their own units of work; anything left pending when the
    endpoint returns is committed here, and rolled back on error.
    """
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Rolling back request session: {e}")
            raise


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Session scope for scripts and other code outside a request."""
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Rolling back session: {e}")
            raise


async def init_database() -> None:
    """Create any missing tables."""
    from . import models  # noqa: F401  registers the tables on Base

    try:
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error(f"Could not create database tables: {e}")
        raise
    logger.info("Database tables ready")


async def close_database() -> None:
    """Dispose the engine; the next get_engine() call builds a new one."""
    global _engine, _session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database engine disposed")


async def check_database_health() -> dict:
    """Round-trip a trivial query and report latency."""
    started = time.perf_counter()
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "connected": False, "error": str(e)}

    return {
        "status": "healthy",
        "connected": True,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }


__all__ = [
    "Base",
    "get_engine",
    "get_session_maker",
    "get_db_session",
    "get_db_context",
    "init_database",
    "close_database",
    "check_database_health",
]
