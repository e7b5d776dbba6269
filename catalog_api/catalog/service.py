"""Catalog service for read operations.

High-level read use cases over the mirrored catalog: products,
categories, brands, channels and formatted variants.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.catalog.repository import CatalogRepository
from catalog_api.catalog.variant_formatter import VariantFormatter
from catalog_api.domain.exceptions import NotFoundError, ValidationError
from catalog_api.infrastructure.config import ChannelConfig, CountryConfig
from catalog_api.infrastructure.enrichment_clients import InventoryClient, PriceClient

T = TypeVar("T")


@dataclass
class PaginationParams:
    """Pagination parameters.

    Attributes:
        page: Page number (1-indexed).
        page_size: Items per page.
    """

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        """Calculate offset from page number."""
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        """Get limit (alias for page_size)."""
        return self.page_size


@dataclass
class PaginatedResult(Generic[T]):
    """Paginated result container.

    Attributes:
        items: List of items.
        total: Total count.
        page: Current page.
        page_size: Items per page.
    """

    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        """Check if there's a previous page."""
        return self.page > 1


class CatalogService:
    """Service for catalog reads.

    Example usage:
        async with get_session() as session:
            service = CatalogService(session, country)
            page = await service.paginate_variants(PaginationParams(page=2))
    """

    def __init__(
        self,
        session: AsyncSession,
        country: CountryConfig,
        orphan_policy: str = "tolerate",
        price_client: PriceClient | None = None,
        inventory_client: InventoryClient | None = None,
        enrichment_concurrency: int = 10,
    ) -> None:
        """Initialize service.

        Args:
            session: Async SQLAlchemy session.
            country: Deployment country configuration.
            orphan_policy: Policy for variants whose product is missing.
            price_client: Price service client used when enriching.
            inventory_client: Inventory service client used when enriching.
            enrichment_concurrency: Variants enriched concurrently.
        """
        self.repository = CatalogRepository(session)
        self.country = country
        self.orphan_policy = orphan_policy
        self.price_client = price_client
        self.inventory_client = inventory_client
        self.enrichment_concurrency = enrichment_concurrency

    def _channel(self, channel_id: int | None) -> ChannelConfig | None:
        if channel_id is not None:
            match = self.country.channel_by_id(channel_id)
            if match is None:
                raise ValidationError(
                    f"Unknown channel {channel_id}",
                    details={"channel_id": channel_id},
                )
            return match[1]
        return next(iter(self.country.channels.values()), None)

    def _formatter(self, channel_id: int | None = None, enrich: bool = False) -> VariantFormatter:
        return VariantFormatter(
            self.repository,
            self.country,
            channel=self._channel(channel_id),
            orphan_policy=self.orphan_policy,
            price_client=self.price_client if enrich else None,
            inventory_client=self.inventory_client if enrich else None,
            enrichment_concurrency=self.enrichment_concurrency,
        )

    # ========================================================================
    # Products
    # ========================================================================

    async def list_products(self) -> list[dict[str, Any]]:
        products = await self.repository.list_products()
        return [product.to_dict() for product in products]

    async def get_product(self, product_id: int) -> dict[str, Any]:
        """Get one product.

        Raises:
            NotFoundError: If the product is not stored.
        """
        product = await self.repository.get_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product.to_dict()

    async def list_product_variants(
        self, product_id: int, enrich: bool = False
    ) -> list[dict[str, Any]]:
        """Formatted variants of one product.

        Raises:
            NotFoundError: If the product is not stored.
        """
        if await self.repository.get_product(product_id) is None:
            raise NotFoundError("Product", product_id)
        variants = await self.repository.list_variants_by_product(product_id)
        return await self._formatter(enrich=enrich).format(variants, enrich=enrich)

    # ========================================================================
    # Variants
    # ========================================================================

    async def paginate_variants(
        self,
        pagination: PaginationParams,
        channel_id: int | None = None,
        enrich: bool = False,
    ) -> PaginatedResult[dict[str, Any]]:
        """Page of formatted variants, optionally limited to one channel.

        Args:
            pagination: Page and page size.
            channel_id: Optional configured channel id.
            enrich: Refresh prices and stock from the enrichment services.

        Returns:
            Paginated formatted variants, each with its product's filters.

        Raises:
            ValidationError: If the channel is not configured.
        """
        formatter = self._formatter(channel_id, enrich)
        variants, total = await self.repository.list_variants_page(
            pagination.offset, pagination.limit, channel_id
        )
        items = await formatter.format(variants, enrich=enrich, include_filters=True)
        return PaginatedResult(
            items=items,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )

    async def format_variants_by_ids(
        self, variant_ids: list[int], enrich: bool = False
    ) -> list[dict[str, Any]]:
        """Formatted visible variants (of visible products) by id."""
        variants = await self.repository.get_visible_variants_by_ids(variant_ids)
        return await self._formatter(enrich=enrich).format(variants, enrich=enrich)

    # ========================================================================
    # Categories
    # ========================================================================

    async def list_categories(self) -> list[dict[str, Any]]:
        categories = await self.repository.list_categories()
        return [category.to_dict() for category in categories]

    async def get_category(self, category_id: int) -> dict[str, Any]:
        """Get one category.

        Raises:
            NotFoundError: If the category is not stored.
        """
        category = await self.repository.get_category(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category.to_dict()

    # ========================================================================
    # Brands
    # ========================================================================

    async def list_brands(self) -> list[dict[str, Any]]:
        brands = await self.repository.list_brands()
        return [brand.to_dict() for brand in brands]

    async def get_brand(self, brand_id: int) -> dict[str, Any]:
        """Get one brand with its product count.

        Raises:
            NotFoundError: If the brand is not stored.
        """
        brand = await self.repository.get_brand(brand_id)
        if brand is None:
            raise NotFoundError("Brand", brand_id)
        return {
            **brand.to_dict(),
            "product_count": await self.repository.count_products_by_brand(brand_id),
        }
