"""Shared fixtures for API tests."""

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from catalog_api.api.dependencies import (
    get_catalog_service,
    get_inventory_client,
    get_read_committed_catalog_service,
    get_sync_service,
)
from catalog_api.application import SyncService
from catalog_api.catalog import CatalogService
from catalog_api.infrastructure.config import CountryConfig, get_country_config
from catalog_api.infrastructure.enrichment_clients import InventoryClient
from catalog_api.main import app


@pytest.fixture
def catalog_service() -> MagicMock:
    """Catalog service double used by every read endpoint."""
    return AsyncMock(spec=CatalogService)


@pytest.fixture
def sync_service() -> MagicMock:
    return AsyncMock(spec=SyncService)


@pytest.fixture
def inventory_client() -> MagicMock:
    return AsyncMock(spec=InventoryClient)


@pytest.fixture
def client(
    catalog_service: MagicMock,
    sync_service: MagicMock,
    inventory_client: MagicMock,
    country: CountryConfig,
) -> Generator[TestClient, None, None]:
    """Test client with services replaced by doubles."""
    app.dependency_overrides[get_catalog_service] = lambda: catalog_service
    app.dependency_overrides[get_read_committed_catalog_service] = lambda: catalog_service
    app.dependency_overrides[get_sync_service] = lambda: sync_service
    app.dependency_overrides[get_inventory_client] = lambda: inventory_client
    app.dependency_overrides[get_country_config] = lambda: country
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
