"""Database configuration and session management.

Provides async SQLAlchemy engine and session factory.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from catalog_api.infrastructure.config import settings

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for models
Base = declarative_base()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession for database operations.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_read_committed_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a session whose transaction runs at READ COMMITTED isolation.

    Reads made through this session never observe rows a concurrent sync
    has written but not yet committed.

    Yields:
        AsyncSession bound to a READ COMMITTED connection.
    """
    async with async_session_factory() as session:
        await session.connection(
            execution_options={"isolation_level": settings.read_isolation_level}
        )
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
