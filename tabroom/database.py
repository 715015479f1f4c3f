"""
tabroom/database.py
Database engine and session factories

No engine is created at import time. The application (or CLI, or a test)
builds one from Settings and passes the session factory to whatever needs it.
"""
import logging
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)
from sqlalchemy.pool import StaticPool

from tabroom.config.settings import Settings
import tabroom.orm  # noqa: F401  registers all models on Base.metadata
from tabroom.orm.base import Base

logger = logging.getLogger(__name__)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Build the async engine for the configured database.

    SQLite gets a busy timeout so concurrent writers wait for the file lock
    instead of failing immediately; an in-memory URL shares one connection
    so every session sees the same database.
    """
    url = settings.DATABASE_URL

    if settings.is_sqlite:
        if url.rstrip("/").endswith(":memory:") or url.endswith("sqlite+aiosqlite://"):
            engine = create_async_engine(
                url,
                echo=settings.DB_ECHO,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            engine = create_async_engine(
                url,
                echo=settings.DB_ECHO,
                pool_pre_ping=True,
                connect_args={
                    "timeout": 30.0,   # SQLite busy timeout in seconds
                }
            )
        _enable_sqlite_foreign_keys(engine)
    else:
        # PostgreSQL: Use standard pool with larger size
        engine = create_async_engine(
            url,
            echo=settings.DB_ECHO,
            pool_pre_ping=True,
            pool_size=20,
            max_overflow=30,
            pool_timeout=30,
            pool_recycle=3600,
        )

    return engine


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    logger.info("Initializing database...")
    logger.info(f"Database dialect: {engine.url.get_backend_name()}")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise

    logger.info("Database initialization complete")


async def close_db(engine: AsyncEngine) -> None:
    """Close database connection"""
    await engine.dispose()
    logger.info("Database connection closed")


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency for getting async database session"""
    session_factory: async_sessionmaker = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
