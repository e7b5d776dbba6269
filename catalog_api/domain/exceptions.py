"""Domain exceptions.

Errors raised by the catalog service. Each carries a stable machine code
that the API layer uses as the ``error`` field of the response body.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code = "DOMAIN_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Boundary Errors
# ============================================================================


class ValidationError(DomainError):
    """Raised when request input is malformed or out of range."""

    error_code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(DomainError):
    """Raised when a requested entity is absent from local storage."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: int | str) -> None:
        """Initialize not found error.

        Args:
            entity: Entity name (e.g., "Product", "Category").
            entity_id: Identifier that was looked up.
        """
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )


# ============================================================================
# Remote Errors
# ============================================================================


class RemoteClientError(DomainError):
    """Error from a call to BigCommerce or an enrichment microservice."""

    error_code = "REMOTE_ERROR"
    status_code = 500

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        """Initialize remote client error.

        Args:
            service: Remote service name (e.g., "bigcommerce", "prices").
            message: Human-readable error message.
            status_code: HTTP status returned by the remote, if any.
            body: Raw response body, if any.
        """
        super().__init__(
            f"[{service}] {message}",
            details={"service": service, "status_code": status_code},
        )
        self.service = service
        self.remote_status = status_code
        self.body = body

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same call may succeed."""
        return self.remote_status is not None and self.remote_status >= 500


class RemoteUnavailable(RemoteClientError):
    """Transport failure or timeout talking to a remote service."""

    error_code = "REMOTE_UNAVAILABLE"

    @property
    def is_transient(self) -> bool:
        return True


class RemoteRateLimited(RemoteClientError):
    """Remote service answered 429 Too Many Requests.

    ``retry_after`` is the number of seconds until the rate-limit window
    resets, when the remote announced it.
    """

    error_code = "REMOTE_RATE_LIMITED"

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = 429,
        body: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(service, message, status_code, body)
        self.retry_after = retry_after
        if retry_after is not None:
            self.details["retry_after"] = retry_after

    @property
    def is_transient(self) -> bool:
        return True


class RemoteNotFound(RemoteClientError):
    """Remote service answered 404."""

    error_code = "REMOTE_NOT_FOUND"


class RemoteError(RemoteClientError):
    """Any other non-2xx answer from a remote service."""


# ============================================================================
# Persistence Errors
# ============================================================================


class StructuralPersistenceError(DomainError):
    """Raised when storage rejects a write because of a schema mismatch.

    Signals code/schema drift, so it aborts the enclosing sync instead of
    being captured as an item-level failure.
    """

    error_code = "STRUCTURAL_PERSISTENCE_ERROR"
    status_code = 500
