"""Tests for health check endpoints."""

from collections.abc import AsyncGenerator, Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from catalog_api.infrastructure.database import get_session
from catalog_api.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def db_session() -> Generator[AsyncMock, None, None]:
    """Replace the database session behind /ready."""
    session = AsyncMock()

    async def override() -> AsyncGenerator[AsyncMock, None]:
        yield session

    app.dependency_overrides[get_session] = override
    yield session
    app.dependency_overrides.clear()


def test_health_check(client: TestClient) -> None:
    """Test health endpoint returns healthy status."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "catalog-api"
    assert "version" in data


def test_readiness_check(client: TestClient, db_session: AsyncMock) -> None:
    """Test readiness endpoint returns ready status."""
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"
    db_session.execute.assert_awaited_once()


def test_readiness_check_database_down(client: TestClient, db_session: AsyncMock) -> None:
    """Readiness fails when the database cannot be reached."""
    db_session.execute.side_effect = OSError("connection refused")
    response = client.get("/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "unavailable"
