"""Database engine lifecycle, async session management and the unit of work."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, AsyncIterator, Optional

from sqlalchemy import DateTime, event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Mapped, declarative_base, mapped_column
from sqlalchemy.pool import StaticPool

from .config import settings
from .timeutils import utcnow

logger = logging.getLogger(__name__)

# Create declarative base for models
Base = declarative_base()


class TimestampMixin:
    """Creation and modification timestamps (naive UTC)."""

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )


def use_immediate_transactions(engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction start with BEGIN IMMEDIATE.

    The write lock is taken when the transaction begins instead of at the
    first write, so concurrent units of work on the same database file are
    serialized rather than failing with "database is locked" on upgrade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_from_url(database_url: str, **kwargs: Any) -> AsyncEngine:
    """
    Create an async engine for PostgreSQL (asyncpg) or SQLite (aiosqlite).

    Args:
        database_url: SQLAlchemy database URL
        **kwargs: Extra keyword arguments for create_async_engine

    Returns:
        AsyncEngine: Configured engine
    """
    is_sqlite = database_url.startswith("sqlite")
    options: dict[str, Any] = {"echo": False, "pool_pre_ping": not is_sqlite}

    if is_sqlite:
        options["connect_args"] = {"check_same_thread": False, "timeout": 30}
        if ":memory:" in database_url:
            # One shared connection, otherwise every connection sees its own empty database
            options["poolclass"] = StaticPool

    options.update(kwargs)
    engine = create_async_engine(database_url, **options)

    if is_sqlite:
        use_immediate_transactions(engine)

    return engine


class Database:
    """Process-wide engine and session factory, created at startup and disposed at shutdown."""

    def __init__(self) -> None:
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    def configure(self, database_url: str) -> None:
        """Create the engine and session factory."""
        self.engine = create_engine_from_url(database_url)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def dispose(self) -> None:
        """Close all pooled connections."""
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self.session_factory = None


database = Database()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields database sessions.

    Yields:
        AsyncSession: Database session
    """
    if database.session_factory is None:
        raise RuntimeError("Database is not initialized; call init_db() at startup")

    async with database.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Alias for FastAPI dependency injection
get_db = get_async_session


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block of reads and writes as one unit of work.

    Commits when the block exits normally. Any exception, including
    business errors raised by the block, rolls back every write made in it
    and is re-raised.
    """
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def init_db(database_url: Optional[str] = None, create_tables: bool = True) -> None:
    """Configure the engine and optionally create all tables."""
    database.configure(database_url or settings.database_url)

    if create_tables:
        async with database.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    logger.info(
        "Database configured",
        extra={"dialect": database.engine.dialect.name, "create_tables": create_tables}
    )


async def close_db() -> None:
    """Close database connections."""
    await database.dispose()


async def ping_db(session: AsyncSession) -> bool:
    """Return True if the database answers a trivial query."""
    result = await session.execute(text("SELECT 1"))
    return result.scalar_one() == 1
