"""Application layer module.

Contains the catalog synchronization use cases and their helpers.
"""

from catalog_api.application.retry import retry_remote
from catalog_api.application.sync_service import SyncService, is_structural_error

__all__ = [
    "SyncService",
    "is_structural_error",
    "retry_remote",
]
