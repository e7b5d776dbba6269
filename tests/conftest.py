"""Shared fixtures for the test suite."""

import os

# The application engine is built at import time; keep it off PostgreSQL.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import catalog_api.catalog.models  # noqa: F401  (registers tables on Base.metadata)
from catalog_api.infrastructure.config import ChannelConfig, CountryConfig, SizeCategories
from catalog_api.infrastructure.database import Base


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a fresh SQLite database with every catalog table."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Single session on the test database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def channel() -> ChannelConfig:
    """Channel with every category-driven flag configured."""
    return ChannelConfig(
        id=1,
        parent_category=1,
        sameday=20,
        despacho24horas=21,
        pickup_in_store=22,
        free_shipping=23,
        turbo=24,
        reserve=30,
        benefits=40,
        campaigns=41,
        advanced_filters=900,
        sizes={"santiago": SizeCategories(small=60, medium=61, big=62)},
    )


@pytest.fixture
def country(channel: ChannelConfig) -> CountryConfig:
    """Chilean deployment (catalog prices, volumetric weight)."""
    return CountryConfig(
        country_code="CL",
        inventory_location_id=3,
        channels={"UF": channel, "AF": ChannelConfig(id=1443267, parent_category=1443267)},
    )


@pytest.fixture
def colombia(channel: ChannelConfig) -> CountryConfig:
    """Colombian deployment (price service, volumetric weight)."""
    return CountryConfig(
        country_code="CO",
        list_price_id=7,
        inventory_location_id=5,
        channels={"UF": channel},
    )
