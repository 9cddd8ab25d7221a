"""
Database engine and session management for the back-office.

Every uvicorn worker (and every Celery task run) owns its own engine; nothing
is pooled across processes.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import HTTPException
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from models.models import Base
import models.system_health  # noqa: F401  (registers status tables on Base.metadata)
from config import settings


class DatabaseManager:
    """Owns the async engine and hands out sessions that commit on success."""

    def __init__(self, database_url: str = None):
        self.database_url = database_url or settings.SQLALCHEMY_DATABASE_URL
        # NullPool: connections must not outlive the event loop that opened them
        self.engine = create_async_engine(self.database_url, poolclass=NullPool, echo=settings.SQL_ECHO)
        self.async_session_maker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def create_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def ping(self):
        """Round-trip ``SELECT 1``; raises when the database is unreachable."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.async_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        await self.engine.dispose()


db_manager = DatabaseManager()


async def get_db_session():
    """FastAPI dependency: one session per request, committed when the handler returns."""
    async with db_manager.get_session() as session:
        yield session


async def flush_or_conflict(session: AsyncSession, detail: str, status_code: int = 409):
    """Flush pending rows; a unique constraint violation becomes an HTTP error with ``detail``."""
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(status_code=status_code, detail=detail) from e
