from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy import event
from badcompany.config import get_settings
import os
import logging
import asyncio

logger = logging.getLogger(__name__)
settings = get_settings()

T = TypeVar("T")

SessionFactory = Callable[[], AsyncSession]


def create_engine_for_database():
    """Create the appropriate async engine based on database configuration."""
    if settings.use_sqlite:
        # SQLite configuration (for local development and testing)
        is_memory = ":memory:" in settings.database_url
        if not is_memory:
            os.makedirs("data", exist_ok=True)
        logger.info("Using SQLite database for local development")
        engine_kwargs = dict(
            echo=settings.app_debug,
            connect_args={
                "check_same_thread": False,
            },
        )
        if is_memory:
            # In-memory SQLite needs StaticPool so all connections share
            # the same database (otherwise each connection gets its own).
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["connect_args"]["timeout"] = 30
        return create_async_engine(settings.database_url, **engine_kwargs)
    else:
        logger.info(f"Connecting to PostgreSQL at {settings.postgres_host}:{settings.postgres_port}")
        return create_async_engine(
            settings.database_url,
            echo=settings.app_debug,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,  # Verify connections before using
            pool_recycle=settings.db_pool_recycle,
        )


# Lazy engine initialization
_engine = None


def get_engine():
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        _engine = create_engine_for_database()

        if settings.use_sqlite:
            is_memory = ":memory:" in settings.database_url

            @event.listens_for(_engine.sync_engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                if not is_memory:
                    cursor.execute("PRAGMA journal_mode=WAL")
                    cursor.execute("PRAGMA busy_timeout=30000")
                cursor.close()

    return _engine


_session_maker = None


def _get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session maker (lazy initialization)."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_maker


def get_session_factory() -> SessionFactory:
    """Dependency that hands routes the session factory instead of a live session.

    Pipeline code opens one short session per retried unit of work, so it
    needs the factory rather than a request-scoped session.
    """
    return _get_session_maker()


# Base class for models
Base = declarative_base()


async def run_in_transaction(
    session_factory: SessionFactory,
    operation: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    """Run ``operation`` in its own session and commit it.

    The session is rolled back if the operation raises, so the call can be
    retried from scratch.
    """
    async with session_factory() as session:
        try:
            result = await operation(session)
            await session.commit()
            return result
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Initialize database tables with retry logic.

    Note: In production with PostgreSQL, prefer using Alembic migrations.
    This function is kept for development and initial setup.
    """
    import badcompany.models  # noqa: F401  (register tables on Base.metadata)

    max_retries = 5
    base_delay = 2

    for attempt in range(max_retries):
        try:
            engine = get_engine()
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables initialized")
            return
        except Exception as e:
            if attempt < max_retries - 1:
                delay = base_delay * (2 ** attempt)
                logger.warning(f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}. Retrying in {delay}s...")
                await asyncio.sleep(delay)
            else:
                logger.error(f"Database initialization failed after {max_retries} attempts: {e}")
                raise


async def dispose_engine() -> None:
    """Close every pooled connection and forget the engine (shutdown hook)."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_maker = None
