"""
Database configuration and connection management for the auth core.
Implements async SQLAlchemy with one engine per process.
"""
from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
import structlog

from .config import Settings
from .exceptions import AuthServiceError
from ..models.base import Base

logger = structlog.get_logger()


class Database:
    """Owns the async engine and session factory built from settings."""

    def __init__(self, settings: Settings):
        engine_kwargs = {"echo": settings.DATABASE_ECHO}
        if not settings.DATABASE_URL.startswith("sqlite"):
            engine_kwargs.update(pool_pre_ping=True, pool_recycle=1800)
        self.engine: AsyncEngine = create_async_engine(settings.DATABASE_URL, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    async def check_connection(self) -> bool:
        """Check if database connection is healthy."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False

    async def dispose(self) -> None:
        """Close all database connections on shutdown."""
        await self.engine.dispose()
        logger.info("Database connections closed")

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except AuthServiceError:
                await session.rollback()
                raise
            except Exception as e:
                await session.rollback()
                logger.error("Database session error", error=str(e))
                raise


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides async session.
    Handles connection cleanup and error management.
    """
    database: Database = request.app.state.database
    async for session in database.session():
        yield session
