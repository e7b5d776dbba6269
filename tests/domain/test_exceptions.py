"""Tests for the domain error taxonomy."""

import pytest

from catalog_api.domain import (
    NotFoundError,
    RemoteError,
    RemoteNotFound,
    RemoteRateLimited,
    RemoteUnavailable,
    StructuralPersistenceError,
    ValidationError,
)


class TestBoundaryErrors:
    """Tests for errors surfaced at the HTTP boundary."""

    def test_validation_error(self) -> None:
        error = ValidationError("Unknown channel 5", details={"channel_id": 5})
        assert error.status_code == 400
        assert error.error_code == "VALIDATION_ERROR"
        assert error.details == {"channel_id": 5}

    def test_not_found_error(self) -> None:
        error = NotFoundError("Product", 42)
        assert error.status_code == 404
        assert error.message == "Product 42 not found"
        assert error.details == {"entity": "Product", "id": 42}

    def test_structural_error(self) -> None:
        error = StructuralPersistenceError("schema mismatch")
        assert error.status_code == 500
        assert error.error_code == "STRUCTURAL_PERSISTENCE_ERROR"


class TestRemoteErrors:
    """Tests for remote error classification."""

    @pytest.mark.parametrize(
        "error,transient",
        [
            (RemoteUnavailable("bigcommerce", "timeout"), True),
            (RemoteRateLimited("bigcommerce", "slow down", 429), True),
            (RemoteError("bigcommerce", "oops", 503), True),
            (RemoteError("bigcommerce", "bad request", 400), False),
            (RemoteNotFound("bigcommerce", "missing", 404), False),
        ],
    )
    def test_is_transient(self, error: RemoteError, transient: bool) -> None:
        assert error.is_transient is transient

    def test_message_names_service(self) -> None:
        error = RemoteError("prices", "GET /price/1/2 returned 500", 500, "boom")
        assert error.message == "[prices] GET /price/1/2 returned 500"
        assert error.remote_status == 500
        assert error.body == "boom"
        assert error.details == {"service": "prices", "status_code": 500}
