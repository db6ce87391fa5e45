"""
Database Session Management

Provides async engine construction, session factories and a
transactional session context manager.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event, exc, pool
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.homematch.utils.logger import get_logger

logger = get_logger(__name__)


def create_engine_from_url(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 5,
    pool_timeout: int = 30,
    pool_recycle: int = 3600,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create an async database engine.

    SQLite URLs (tests) get no pool sizing, which SQLite's pools reject.

    Args:
        database_url: SQLAlchemy async URL (postgresql+asyncpg://, sqlite+aiosqlite://)
        pool_size: Persistent connections kept in the pool
        max_overflow: Extra connections allowed above pool_size
        pool_timeout: Seconds to wait for a pooled connection
        pool_recycle: Seconds before a connection is recycled
        echo: Log SQL statements

    Returns:
        AsyncEngine
    """
    if database_url.startswith("sqlite"):
        engine = create_async_engine(database_url, echo=echo)
    else:
        engine = create_async_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,  # Verify connections before using
            echo=echo,
        )

    @event.listens_for(engine.sync_engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        logger.debug("database_connection_established")

    logger.debug("database_engine_created", dialect=engine.dialect.name)
    return engine


@event.listens_for(pool.Pool, "invalidate")
def receive_invalidate(dbapi_conn, connection_record, exception):
    """
    Event listener for connection invalidation.

    Logs when a connection is marked as invalid and removed from pool.
    """
    logger.warning(
        "database_connection_invalidated",
        exception=str(exception) if exception else None
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session factory bound to the engine."""
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False
    )


@asynccontextmanager
async def get_db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Get database session with automatic cleanup.

    Usage:
        async with get_db_session(factory) as session:
            result = await session.execute(select(Model))

    Yields:
        Database session

    Raises:
        Exception: Re-raises any exception after rollback
    """
    session = session_factory()
    try:
        logger.debug("database_session_created")
        yield session
        await session.commit()
        logger.debug("database_session_committed")
    except exc.SQLAlchemyError as e:
        await session.rollback()
        logger.error(
            "database_session_rollback",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    except Exception as e:
        await session.rollback()
        logger.error(
            "database_session_error",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    finally:
        await session.close()
        logger.debug("database_session_closed")


async def create_all_tables(engine: AsyncEngine) -> None:
    """
    Create all database tables defined in models.

    WARNING: Use Alembic migrations instead in production.
    This is only for testing and initial setup.
    """
    from src.homematch.db.base import Base, import_all_models

    logger.info("creating_database_tables")

    import_all_models()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("database_tables_created")


async def drop_all_tables(engine: AsyncEngine) -> None:
    """
    Drop all database tables.

    WARNING: This will delete all data! Only use in development/testing.
    """
    from src.homematch.db.base import Base, import_all_models

    logger.warning("dropping_all_database_tables")

    import_all_models()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    logger.warning("all_database_tables_dropped")
