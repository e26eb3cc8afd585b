"""Database engine and session management."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from orgbilling.config import settings

logger = structlog.get_logger()

# Created on first use so importing models never opens a connection
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options(database_url: str) -> dict:
    """Pool settings for the configured environment."""
    options: dict = {"echo": settings.app_debug}

    if database_url.startswith("sqlite") or settings.is_testing or settings.is_development:
        options["poolclass"] = NullPool
    else:
        options["poolclass"] = AsyncAdaptedQueuePool
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
        options["pool_pre_ping"] = True
        options["pool_recycle"] = 3600

    return options


def sync_database_url(database_url: str) -> str:
    """The URL with its async driver removed, for SQL rendering."""
    return database_url.replace("+asyncpg", "").replace("+aiosqlite", "")


def configure_engine(database_url: str | None = None) -> AsyncEngine:
    """
    Build the engine for a database URL, replacing any existing one.

    The previous engine is dropped without being disposed; call
    ``dispose_engine()`` first when it may still hold connections.
    """
    global _engine, _session_factory
    url = database_url or settings.database_url
    _engine = create_async_engine(url, **_engine_options(url))
    _session_factory = None
    logger.debug("database_engine_configured", dialect=_engine.dialect.name)
    return _engine


def get_engine() -> AsyncEngine:
    """Get or create the database engine."""
    if _engine is None:
        return configure_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that commits on success (FastAPI dependency)."""
    async with get_session_context() as session:
        yield session


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Session scope for scripts and background callers."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def check_db_connection() -> bool:
    """Return True when a trivial query succeeds."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
            return True
    except (SQLAlchemyError, OSError) as e:
        logger.warning("database_unreachable", error=str(e))
        return False


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None

