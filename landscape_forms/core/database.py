"""
Database engine and session management.

Builds one bounded async engine per process from settings and hands out
sessions. Pool limits map onto SQLAlchemy's QueuePool:

- max idle connections  -> pool_size (kept alive between uses)
- max open connections  -> pool_size + max_overflow
- connection lifetime   -> pool_recycle (older connections are replaced)
- wait for a connection -> pool_timeout (no caller blocks forever)

Statements are bounded by asyncpg's command_timeout.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from landscape_forms.config import Settings, get_settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Create an async engine with the configured pool bounds.

    Args:
        settings: Application settings

    Returns:
        Configured AsyncEngine (no connection is opened yet)
    """
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_size=settings.database_max_idle_connections,
        max_overflow=settings.database_pool_overflow,
        pool_recycle=settings.database_connection_max_lifetime_seconds,
        pool_timeout=settings.database_pool_timeout_seconds,
        pool_pre_ping=True,
        connect_args={"command_timeout": settings.database_command_timeout_seconds},
    )


def get_engine() -> AsyncEngine:
    """Get the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_from_settings(settings)
        logger.info(
            f"Created database engine (max_open={settings.database_max_open_connections}, "
            f"max_idle={settings.database_max_idle_connections}, "
            f"max_lifetime={settings.database_connection_max_lifetime_seconds}s)"
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the process-wide session factory, creating it on first use."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session for one unit of work.

    Repositories open and commit their own transactions on the session; the
    session is closed (and its connection returned to the pool) on every exit
    path.

    Usage:
        async with get_db_context() as db:
            repo = FormRepository(db)
            view = await repo.get_form_view(caller.user_id, form_id)
    """
    async with get_session_factory()() as session:
        yield session


async def init_db() -> None:
    """
    Initialize the engine and verify the database is reachable.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If the database cannot be reached
    """
    engine = get_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database connection verified")


async def close_db() -> None:
    """Dispose of the engine and close all pooled connections."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


def reset_db_state() -> None:
    """
    Forget the cached engine and session factory without disposing them.

    Used by tests after settings change so the next call rebuilds from the
    new configuration.
    """
    global _engine, _session_factory
    _engine = None
    _session_factory = None
