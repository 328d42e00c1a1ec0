"""
Database Configuration.

SQLAlchemy async engine and session management.
Uses lazy initialization to prevent import-time failures when configuration
is not present (tests, CLI help).
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from backlog.backend.core.logging import get_logger

logger = get_logger(__name__)

POST_COMMIT_KEY = "post_commit_callbacks"

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


SQLITE_LOWER_FUNCTION = "unicode_lower"


def _unicode_lower(value: str | None) -> str | None:
    return value.lower() if value is not None else None


def configure_sqlite(engine: AsyncEngine) -> None:
    """
    Prepare every SQLite connection of the engine.

    Turns on FK enforcement and registers ``unicode_lower``, since the
    built-in ``lower()`` only folds ASCII letters.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        dbapi_connection.create_function(SQLITE_LOWER_FUNCTION, 1, _unicode_lower)


def _create_engine() -> AsyncEngine:
    """Create async SQLAlchemy engine."""
    from backlog.backend.core.config import get_app_config, get_database_url

    url = get_database_url()
    db_config = get_app_config().database

    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=db_config.echo)
        configure_sqlite(engine)
    else:
        engine = create_async_engine(
            url,
            pool_size=db_config.pool_size,
            max_overflow=db_config.max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_recycle=db_config.pool_recycle,
            echo=db_config.echo,
        )
    logger.debug("Database engine created", extra={"dialect": engine.dialect.name})
    return engine


def get_engine() -> AsyncEngine:
    """
    Get the database engine, creating it on first use.

    Raises:
        RuntimeError: If database configuration is invalid
    """
    global _engine
    if _engine is None:
        _engine = _create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory, creating it on first use."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


def on_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """
    Run ``callback`` after the session's unit of work commits.

    Callbacks are dropped when the unit of work rolls back.
    """
    session.info.setdefault(POST_COMMIT_KEY, []).append(callback)


async def _run_post_commit(session: AsyncSession) -> None:
    for callback in session.info.pop(POST_COMMIT_KEY, []):
        await callback()


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Unit of work outside FastAPI dependency injection.

    Commits when the block exits cleanly and then runs the ``on_commit``
    callbacks; rolls back when it raises.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            session.info.pop(POST_COMMIT_KEY, None)
            await session.rollback()
            raise
        await _run_post_commit(session)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Usage in endpoints:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with session_scope(get_session_factory()) as session:
        yield session


async def create_tables() -> None:
    """Create all tables from the ORM metadata (idempotent)."""
    from backlog.backend.models import Base

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None
