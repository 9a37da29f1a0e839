"""
Spoken Admin API — Database Session Management
================================================

What:  Async SQLAlchemy engine, session factory, and session helpers.
Why:   Centralizes all database connection logic in one place.
How:   Creates an async engine with connection pooling. Pipeline handlers
       receive a RequestContext instead of FastAPI dependencies, so they open
       sessions with the session_scope() context manager, which commits on
       success and rolls back on error.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from spoken_admin.config import settings


# The engine connects lazily: nothing touches the database until the first query
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    echo=settings.log_level == "DEBUG",
)

# expire_on_commit=False: handlers serialize ORM objects after the commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session for one unit of work.

    Usage in a pipeline handler:
        async with session_scope() as db:
            course = await course_service.create_course(db, data, created_by=ctx.caller_id)

    Commits when the block exits normally, rolls back and re-raises otherwise,
    always closes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def dispose_engine() -> None:
    """Close all pooled connections (application shutdown)."""
    await engine.dispose()
