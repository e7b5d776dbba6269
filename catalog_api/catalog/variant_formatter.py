"""Variant formatting for client-facing reads.

Builds the denormalized variant representation from stored variant rows,
their parent products, brands and category assignments, optionally
refreshing prices and stock from the enrichment microservices.

Formatting never raises: a malformed field degrades to a safe default and
one bad record never blanks the rest of the page.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from catalog_api.catalog.models import Brand, Product, SafeStock, Variant
from catalog_api.catalog.repository import CatalogRepository
from catalog_api.catalog.types import decode_json_text
from catalog_api.domain.calculations import (
    available_stock,
    discount_percent,
    transfer_price,
    volumetric_weight,
)
from catalog_api.domain.exceptions import RemoteClientError
from catalog_api.infrastructure.config import ChannelConfig, CountryConfig
from catalog_api.infrastructure.enrichment_clients import InventoryClient, PriceClient

logger = structlog.get_logger()

ORPHAN_POLICIES = ("tolerate", "skip", "error")


@dataclass
class FormattingContext:
    """Everything loaded once per batch to format its variants."""

    products: dict[int, Product] = field(default_factory=dict)
    brands: dict[int, Brand] = field(default_factory=dict)
    product_categories: dict[int, list[int]] = field(default_factory=dict)
    filters: dict[int, list[int]] | None = None
    tag_titles: dict[int, str] = field(default_factory=dict)
    campaign_titles: dict[int, str] = field(default_factory=dict)
    safe_stock: dict[str, SafeStock] = field(default_factory=dict)


def _titles_in(categories: Sequence[int], titles: dict[int, str]) -> list[str]:
    return list(dict.fromkeys(titles[c] for c in categories if c in titles))


class VariantFormatter:
    """Formats stored variants into the client-facing shape.

    Example usage:
        formatter = VariantFormatter(CatalogRepository(session), country)
        formatted = await formatter.format(variants)
    """

    def __init__(
        self,
        repository: CatalogRepository,
        country: CountryConfig,
        channel: ChannelConfig | None = None,
        orphan_policy: str = "tolerate",
        price_client: PriceClient | None = None,
        inventory_client: InventoryClient | None = None,
        enrichment_concurrency: int = 10,
    ) -> None:
        """Initialize formatter.

        Args:
            repository: Catalog repository used to load related rows.
            country: Deployment country configuration.
            channel: Channel whose benefit/campaign categories become tags.
            orphan_policy: What to do with variants whose product is missing.
            price_client: Price service client for enrichment.
            inventory_client: Inventory service client for enrichment.
            enrichment_concurrency: Variants enriched concurrently.
        """
        if orphan_policy not in ORPHAN_POLICIES:
            raise ValueError(f"Unknown orphan variant policy: {orphan_policy}")
        self.repository = repository
        self.country = country
        self.channel = channel
        self.orphan_policy = orphan_policy
        self.price_client = price_client
        self.inventory_client = inventory_client
        self.enrichment_concurrency = enrichment_concurrency

    # ========================================================================
    # Public API
    # ========================================================================

    async def format(
        self,
        variants: Sequence[Variant],
        enrich: bool = False,
        include_filters: bool = False,
    ) -> list[dict[str, Any]]:
        """Format a batch of variants.

        Args:
            variants: Stored variant rows.
            enrich: Refresh prices and stock from the enrichment services.
            include_filters: Attach each product's filter category ids.

        Returns:
            Formatted variants in input order (orphans may be dropped
            depending on the orphan policy).
        """
        if not variants:
            return []

        context = await self.load_context(variants, enrich, include_filters)

        formatted: list[tuple[Variant, dict[str, Any]]] = []
        for variant in variants:
            record = self.format_one(variant, context)
            if record is not None:
                formatted.append((variant, record))

        if enrich:
            await self._enrich_all(formatted, context)

        return [record for _, record in formatted]

    async def load_context(
        self,
        variants: Sequence[Variant],
        enrich: bool = False,
        include_filters: bool = False,
    ) -> FormattingContext:
        """Load the rows related to a batch of variants."""
        repo = self.repository
        product_ids = {v.product_id for v in variants}
        products = await repo.get_products_by_ids(product_ids)
        context = FormattingContext(
            products=products,
            brands=await repo.get_brands_by_ids(p.brand_id for p in products.values()),
            product_categories=await repo.get_product_category_ids(product_ids),
        )

        if include_filters:
            context.filters = await repo.get_filter_category_ids(product_ids)

        if self.channel is not None:
            if self.channel.benefits is not None:
                context.tag_titles = await repo.get_category_titles(
                    await repo.get_child_category_ids(self.channel.benefits)
                )
            if self.channel.campaigns is not None:
                context.campaign_titles = await repo.get_category_titles(
                    await repo.get_child_category_ids(self.channel.campaigns)
                )

        if enrich:
            context.safe_stock = await repo.get_safe_stock_by_skus(v.sku for v in variants)
        return context

    def format_one(
        self, variant: Variant, context: FormattingContext
    ) -> dict[str, Any] | None:
        """Format one variant.

        Returns:
            The formatted variant, or None if it is an orphan that the
            policy drops.
        """
        product = context.products.get(variant.product_id)
        if product is None:
            self._report_orphan(variant)
            if self.orphan_policy != "tolerate":
                return None

        try:
            return self._build(variant, product, context)
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            logger.warning(
                "Variant formatting degraded",
                variant_id=getattr(variant, "id", None),
                error=str(e),
            )
            return self._minimal(variant)

    # ========================================================================
    # Building
    # ========================================================================

    def _report_orphan(self, variant: Variant) -> None:
        log = logger.error if self.orphan_policy == "error" else logger.warning
        log(
            "Orphan variant",
            variant_id=variant.id,
            product_id=variant.product_id,
            policy=self.orphan_policy,
        )

    def _build(
        self,
        variant: Variant,
        product: Product | None,
        context: FormattingContext,
    ) -> dict[str, Any]:
        categories = decode_json_text(variant.categories)
        options = decode_json_text(variant.options)
        related_products = decode_json_text(variant.related_products)
        images = decode_json_text(variant.images)
        image = variant.image or (product.image if product else "") or ""
        if not images and image:
            images = [image]

        product_categories = context.product_categories.get(variant.product_id) or categories
        brand = context.brands.get(product.brand_id) if product and product.brand_id else None

        record: dict[str, Any] = {
            "id": variant.id,
            "product_id": variant.product_id,
            "title": variant.title,
            "main_title": product.title if product else variant.title,
            "page_title": (product.page_title if product else None) or variant.title,
            "description": product.description if product else None,
            "sku": variant.sku,
            "brand_id": product.brand_id if product else None,
            "brand": brand.name if brand else None,
            "image": image,
            "images": images,
            "hover": product.hover if product else None,
            "categories": categories,
            "options": options,
            "related_products": related_products,
            "option_label": variant.option_label,
            "stock": variant.stock or 0,
            "warning_stock": variant.warning_stock or 0,
            "normal_price": variant.normal_price or 0,
            "discount_price": variant.discount_price or 0,
            "cash_price": variant.cash_price or 0,
            "discount_rate": discount_percent(variant.normal_price, variant.discount_price),
            "url": product.url if product else None,
            "type": product.type if product else variant.type,
            "quantity": variant.quantity or 0,
            "armed_cost": variant.armed_cost or 0,
            "armed_quantity": variant.armed_quantity or 0,
            "weight": volumetric_weight(
                variant.width,
                variant.depth,
                variant.height,
                variant.weight,
                self.country.country_code,
            ),
            "height": variant.height or 0,
            "width": variant.width or 0,
            "depth": variant.depth or 0,
            "sort_order": product.sort_order if product else 0,
            "reserve": product.reserve if product else None,
            "reviews": product.reviews if product else None,
            "sameday": bool(product and product.sameday),
            "free_shipping": bool(product and product.free_shipping),
            "despacho24horas": bool(product and product.despacho24horas),
            "featured": bool(product and product.featured),
            "pickup_in_store": bool(product and product.pickup_in_store),
            "is_visible": bool(variant.is_visible) and (product.is_visible if product else True),
            "turbo": bool(product and product.turbo),
            "meta_keywords": decode_json_text(product.meta_keywords) if product else [],
            "meta_description": product.meta_description if product else None,
            "sizes": (product.sizes if product else None) or {},
            "tags": _titles_in(product_categories, context.tag_titles),
            "campaigns": _titles_in(product_categories, context.campaign_titles),
            "keywords": variant.keywords or "",
            "variants": [],
            "packs": [],
        }
        if context.filters is not None:
            record["filters"] = context.filters.get(variant.product_id, [])
        return record

    def _minimal(self, variant: Variant) -> dict[str, Any]:
        """Smallest valid record for a variant whose fields could not be read."""
        return {
            "id": variant.id,
            "product_id": variant.product_id,
            "title": variant.title,
            "main_title": variant.title,
            "sku": variant.sku,
            "image": variant.image or "",
            "images": [variant.image] if variant.image else [],
            "categories": [],
            "options": [],
            "related_products": [],
            "stock": 0,
            "normal_price": 0,
            "discount_price": 0,
            "cash_price": 0,
            "discount_rate": "0%",
            "is_visible": False,
            "tags": [],
            "campaigns": [],
            "variants": [],
            "packs": [],
        }

    # ========================================================================
    # Enrichment
    # ========================================================================

    async def _enrich_all(
        self,
        formatted: list[tuple[Variant, dict[str, Any]]],
        context: FormattingContext,
    ) -> None:
        limiter = asyncio.Semaphore(self.enrichment_concurrency)

        async def enrich(variant: Variant, record: dict[str, Any]) -> None:
            async with limiter:
                await self._enrich(variant, record, context.safe_stock.get(variant.sku))

        await asyncio.gather(*(enrich(v, r) for v, r in formatted))

    async def _enrich(
        self,
        variant: Variant,
        record: dict[str, Any],
        safe: SafeStock | None,
    ) -> None:
        """Overlay live prices and stock; on failure keep the stored values."""
        if self.country.uses_price_service and self.price_client is not None:
            try:
                quote = await self.price_client.get_price(variant.id)
            except RemoteClientError as e:
                logger.warning("Price enrichment failed", variant_id=variant.id, error=e.message)
            else:
                if quote.price and quote.calculated_price:
                    record["normal_price"] = quote.price
                    record["discount_price"] = quote.calculated_price
                    record["cash_price"] = transfer_price(
                        quote.price, quote.calculated_price, self.country.transfer_percent
                    )
                    record["discount_rate"] = discount_percent(
                        quote.price, quote.calculated_price
                    )

        if self.inventory_client is not None:
            try:
                level = await self.inventory_client.get_inventory(variant.id)
            except RemoteClientError as e:
                logger.warning(
                    "Inventory enrichment failed", variant_id=variant.id, error=e.message
                )
            else:
                safety = safe.safety_stock if safe is not None else level.safety_stock
                record["stock"] = available_stock(
                    variant.quantity, safety, level.available_to_sell
                )
                record["warning_stock"] = safety
        elif safe is not None:
            record["stock"] = available_stock(
                variant.quantity, safe.safety_stock, safe.available_to_sell
            )
            record["warning_stock"] = safe.safety_stock
