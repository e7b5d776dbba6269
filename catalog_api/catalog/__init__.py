"""Mirrored catalog storage and reads.

ORM models, the catalog repository, read use cases and the variant
formatter.
"""

from catalog_api.catalog.models import (
    Brand,
    Category,
    CategoryProduct,
    Channel,
    ChannelProduct,
    FiltersProduct,
    Product,
    ProductOption,
    SafeStock,
    Variant,
)
from catalog_api.catalog.repository import CatalogRepository
from catalog_api.catalog.service import CatalogService, PaginatedResult, PaginationParams
from catalog_api.catalog.variant_formatter import VariantFormatter

__all__ = [
    # Models
    "Brand",
    "Category",
    "CategoryProduct",
    "Channel",
    "ChannelProduct",
    "FiltersProduct",
    "Product",
    "ProductOption",
    "SafeStock",
    "Variant",
    # Repository
    "CatalogRepository",
    # Service
    "CatalogService",
    "PaginatedResult",
    "PaginationParams",
    "VariantFormatter",
]
