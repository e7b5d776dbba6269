"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from catalog_api.api.brands import router as brands_router
from catalog_api.api.categories import router as categories_router
from catalog_api.api.channels import router as channels_router
from catalog_api.api.health import router as health_router
from catalog_api.api.inventory import router as inventory_router
from catalog_api.api.products import router as products_router
from catalog_api.api.sync import router as sync_router
from catalog_api.api.variants import router as variants_router

__all__ = [
    "brands_router",
    "categories_router",
    "channels_router",
    "health_router",
    "inventory_router",
    "products_router",
    "sync_router",
    "variants_router",
]
