"""
Database Client

Async SQLAlchemy database connection and session management.
"""

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from reportsafe.core.errors import StorageError
from reportsafe.infrastructure.database.models import Base

logger = logging.getLogger(__name__)


class DatabaseClient:
    """Database client for managing async connections"""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = None
        self.session_maker: Optional[async_sessionmaker] = None

    async def verify_connection(self):
        """Verify the database answers a trivial query"""
        if not self.engine:
            raise RuntimeError("Engine not initialized. Call initialize() first.")

        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database connection failed: {e}")
            raise StorageError("Database unreachable") from e
        logger.info("Database connection verified")

    async def initialize(self):
        """Initialize database engine and create tables"""
        logger.info(f"Initializing database: {self.database_url}")

        engine_options = {"echo": False}
        if self.database_url.startswith("sqlite"):
            engine_options["poolclass"] = NullPool

        self.engine = create_async_engine(self.database_url, **engine_options)

        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        await self.verify_connection()

        # Deployed databases are migrated with Alembic; create_all only fills
        # in tables missing from an unmigrated development database
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database initialized successfully")

    async def close(self):
        """Close database connections"""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")

    def get_session(self) -> AsyncSession:
        """Get database session"""
        if not self.session_maker:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self.session_maker()

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False
