"""Domain layer - calculations, sync results and error taxonomy."""

from catalog_api.domain.calculations import (
    available_stock,
    discount_percent,
    transfer_price,
    volumetric_weight,
)
from catalog_api.domain.exceptions import (
    DomainError,
    NotFoundError,
    RemoteClientError,
    RemoteError,
    RemoteNotFound,
    RemoteRateLimited,
    RemoteUnavailable,
    StructuralPersistenceError,
    ValidationError,
)
from catalog_api.domain.results import SyncItemResult, SyncResult

__all__ = [
    # Calculations
    "available_stock",
    "discount_percent",
    "transfer_price",
    "volumetric_weight",
    # Results
    "SyncItemResult",
    "SyncResult",
    # Exceptions
    "DomainError",
    "NotFoundError",
    "RemoteClientError",
    "RemoteError",
    "RemoteNotFound",
    "RemoteRateLimited",
    "RemoteUnavailable",
    "StructuralPersistenceError",
    "ValidationError",
]
