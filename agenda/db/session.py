"""
Database Engine and Request Sessions

One async engine per process. Each HTTP request gets its own session;
reads run in that session and the only write, the booking insert, is
committed or rolled back by AppointmentRepository.commit_appointment.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from agenda.config import settings

logger = logging.getLogger(__name__)


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    global _engine

    if _engine is None:
        _engine = create_async_engine(
            settings.database_url_str,
            echo=settings.db_echo,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
        logger.info(f"Database engine created (pool_size={settings.db_pool_size})")

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )

    return _session_factory


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding the session behind the schedule and
    appointment repositories of one request.

    Nothing is committed here. A request that only lists slots leaves
    its read transaction to be discarded on close.
    """
    session = get_session_factory()()

    try:
        yield session
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Scheduling request rolled back: {e}")
        raise
    finally:
        await session.close()


async def check_database_connection() -> bool:
    """True when the schedules table can be reached."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1 FROM schedules LIMIT 1"))
        logger.info("Database connection check successful")
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def close_database_connection() -> None:
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed")
