"""
Database connection management and session handling.
"""

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncGenerator, Any, Iterable, Iterator

from sqlalchemy import select, func
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
    AsyncEngine,
)

from .config import get_settings
from .models.base import Base
from .utils.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)

# Global engine and session factory
engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None

# Serialization failure and deadlock detected
TRANSIENT_PG_SQLSTATES = {"40001", "40P01"}


def create_database_engine(database_url: str | None = None) -> AsyncEngine:
    """Create and configure the database engine for the configured backend."""
    settings = get_settings()
    url = make_url(database_url or settings.database_url)

    if url.get_backend_name() == "sqlite":
        # Writers serialize on the database file; wait instead of failing fast
        return create_async_engine(
            url,
            echo=settings.debug,
            connect_args={"timeout": settings.sqlite_busy_timeout_seconds},
        )

    return create_async_engine(
        url,
        # Connection pool configuration for concurrent access
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,  # Validate connections before use
        pool_recycle=3600,   # Recycle connections every hour
        # Echo SQL queries in development
        echo=settings.debug,
        connect_args={
            "server_settings": {
                "application_name": "movie_reservation_engine",
            }
        }
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory for database sessions."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database() -> None:
    """Initialize database connection and create tables."""
    global engine, async_session_factory

    if engine is not None:
        return

    logger.info("Initializing database connection...")

    engine = create_database_engine()
    async_session_factory = create_session_factory(engine)

    await create_tables(engine)

    logger.info("Database initialized successfully")


async def close_database() -> None:
    """Close database connections."""
    global engine, async_session_factory

    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        async_session_factory = None
        logger.info("Database connections closed")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the global session factory."""
    if async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return async_session_factory


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session with automatic cleanup.

    Usage:
        async with get_db_session() as session:
            # Use session here
            result = await session.execute(query)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def is_transient_storage_error(exc: BaseException) -> bool:
    """
    Whether a storage error is contention that a retry may resolve.

    Covers SQLite busy/locked errors and PostgreSQL serialization failures
    and deadlocks.
    """
    if isinstance(exc, OperationalError):
        message = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
        if "database is locked" in message or "database is busy" in message:
            return True

    if isinstance(exc, DBAPIError) and exc.orig is not None:
        sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
        if sqlstate in TRANSIENT_PG_SQLSTATES:
            return True

    return False


def is_unique_violation(exc: IntegrityError, index_name: str, columns: Iterable[str]) -> bool:
    """
    Whether an integrity error was raised by the unique index ``index_name``.

    PostgreSQL names the violated index in its message; SQLite names the
    indexed ``table.column`` pairs instead.
    """
    message = str(exc.orig) if exc.orig is not None else str(exc)
    if index_name in message:
        return True
    return "UNIQUE constraint failed" in message and all(column in message for column in columns)


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


async def acquire_advisory_xact_lock(session: AsyncSession, key: Any) -> None:
    """
    Take a transaction-scoped advisory lock on PostgreSQL.

    Released automatically on commit or rollback. A no-op on other backends,
    where writers are already serialized by the database file lock.
    """
    if dialect_name(session) != "postgresql":
        return
    await session.execute(
        select(func.pg_advisory_xact_lock(func.hashtext(str(key))))
    )


@contextmanager
def translate_storage_errors(operation: str) -> Iterator[None]:
    """Re-raise transient storage contention as ``ConcurrencyError``."""
    try:
        yield
    except DBAPIError as e:
        if is_transient_storage_error(e):
            logger.warning(f"Storage contention during {operation}: {e.orig}")
            raise ConcurrencyError(f"Storage contention during {operation}") from e
        raise
