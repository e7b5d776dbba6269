"""Catalog synchronization service.

Reconciles brands, categories and channel products from BigCommerce into
the local database. Every remote item is upserted by its natural key in
its own transaction; item-level failures are collected into the result
instead of aborting the run. Schema-level persistence errors abort.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import CompileError, OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_api.application.product_mapper import (
    StockFigures,
    map_option,
    map_product,
    map_variant,
)
from catalog_api.application.retry import retry_remote
from catalog_api.catalog.repository import CatalogRepository
from catalog_api.domain.exceptions import (
    RemoteClientError,
    StructuralPersistenceError,
    ValidationError,
)
from catalog_api.domain.results import SyncItemResult, SyncResult
from catalog_api.infrastructure.bigcommerce_client import (
    BigCommerceClient,
    RemoteOption,
    RemoteProduct,
)
from catalog_api.infrastructure.config import ChannelConfig, CountryConfig, settings
from catalog_api.infrastructure.enrichment_clients import PacksClient, PriceClient, PriceQuote

logger = structlog.get_logger()

T = TypeVar("T")

# In-flight channel assignment page requests per sweep
CHANNEL_PAGE_CONCURRENCY = 15
CHANNEL_PAGE_SIZE = 200

STRUCTURAL_MESSAGES = (
    "no such column",
    "has no column",
    "no such table",
    "unconsumed column",
)


def is_structural_error(error: BaseException) -> bool:
    """Whether a persistence error comes from a schema mismatch.

    Args:
        error: Exception raised by the persistence layer.

    Returns:
        True for missing tables/columns and uncompilable statements.
    """
    if isinstance(error, (ProgrammingError, CompileError)):
        return True
    if isinstance(error, OperationalError):
        message = str(error).lower()
        return any(marker in message for marker in STRUCTURAL_MESSAGES)
    return False


def _error_message(error: BaseException) -> str:
    original = getattr(error, "orig", None)
    return str(original or error)


class SyncService:
    """Service reconciling the remote catalog into local storage.

    Example usage:
        async with create_bigcommerce_client() as catalog:
            service = SyncService(async_session_factory, catalog, country)
            result = await service.sync_brands()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        catalog: BigCommerceClient,
        country: CountryConfig,
        price_client: PriceClient | None = None,
        packs_client: PacksClient | None = None,
        write_concurrency: int | None = None,
        retry_attempts: int | None = None,
        retry_base_delay: float | None = None,
        retry_max_delay: float | None = None,
        product_batch_size: int | None = None,
        product_batch_concurrency: int | None = None,
        product_concurrency: int | None = None,
    ) -> None:
        """Initialize sync service.

        Args:
            session_factory: Factory for per-item database sessions.
            catalog: BigCommerce client.
            country: Deployment country configuration.
            price_client: Price service client (needed outside Chile).
            packs_client: Packs client; channels without ``api_url`` skip packs.
            write_concurrency: Item upserts in flight at once.
            retry_attempts: Attempts per remote call.
            retry_base_delay: First retry delay in seconds.
            retry_max_delay: Upper bound of a retry delay in seconds.
            product_batch_size: Product ids per detail request.
            product_batch_concurrency: Detail requests in flight at once.
            product_concurrency: Products fetching options and prices at once.
        """
        self.session_factory = session_factory
        self.catalog = catalog
        self.country = country
        self.price_client = price_client
        self.packs_client = packs_client
        self.retry_attempts = (
            settings.retry_attempts if retry_attempts is None else retry_attempts
        )
        self.retry_base_delay = (
            settings.retry_base_delay if retry_base_delay is None else retry_base_delay
        )
        self.retry_max_delay = (
            settings.retry_max_delay if retry_max_delay is None else retry_max_delay
        )
        self.product_batch_size = product_batch_size or settings.product_batch_size
        self._write_limit = asyncio.Semaphore(write_concurrency or settings.write_concurrency)
        self._batch_limit = asyncio.Semaphore(
            product_batch_concurrency or settings.product_batch_concurrency
        )
        self._product_limit = asyncio.Semaphore(
            product_concurrency or settings.product_concurrency
        )

    # ========================================================================
    # Plumbing
    # ========================================================================

    async def _remote(self, call: Callable[[], Awaitable[T]], operation: str) -> T:
        return await retry_remote(
            call,
            attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
            operation=operation,
            rate_limit_max_delay=settings.retry_rate_limit_max_delay,
        )

    async def _write(self, write: Callable[[CatalogRepository], Awaitable[Any]]) -> Any:
        """Run ``write`` in its own transaction.

        Raises:
            StructuralPersistenceError: If storage rejected the schema.
            SQLAlchemyError: Any other persistence failure.
        """
        async with self._write_limit:
            async with self.session_factory() as session:
                try:
                    outcome = await write(CatalogRepository(session))
                    await session.commit()
                    return outcome
                except SQLAlchemyError as e:
                    await session.rollback()
                    if is_structural_error(e):
                        logger.error(
                            "Structural persistence error",
                            error=_error_message(e),
                        )
                        raise StructuralPersistenceError(
                            "Storage rejected the write due to a schema mismatch",
                            details={"error": _error_message(e)},
                        ) from e
                    raise

    async def _reconcile_item(
        self,
        entity: str,
        data: dict[str, Any],
        write: Callable[[CatalogRepository], Awaitable[Any]],
    ) -> SyncItemResult:
        """Upsert one item, capturing data-level failures."""
        try:
            await self._write(write)
        except StructuralPersistenceError:
            raise
        except (SQLAlchemyError, ValueError, TypeError) as e:
            logger.warning(
                "Sync item failed",
                entity=entity,
                item=data,
                error=_error_message(e),
            )
            return SyncItemResult.failed(data, _error_message(e))
        return SyncItemResult.ok(data)

    @staticmethod
    def _collect(outcomes: list[Any]) -> list[SyncItemResult]:
        """Unwrap gathered outcomes, re-raising the first fatal error."""
        for outcome in outcomes:
            if isinstance(outcome, StructuralPersistenceError):
                raise outcome
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return outcomes

    # ========================================================================
    # Brands
    # ========================================================================

    async def sync_brands(self) -> SyncResult:
        """Upsert every remote brand by id.

        Returns:
            Sync result with one entry per brand.
        """
        start = time.perf_counter()
        brands = await self._remote(self.catalog.list_brands, "list_brands")

        async def reconcile(values: dict[str, Any]) -> SyncItemResult:
            return await self._reconcile_item(
                "brand", values, lambda repo: repo.upsert_brand(values)
            )

        outcomes = await asyncio.gather(
            *(reconcile({"id": brand.id, "name": brand.name}) for brand in brands),
            return_exceptions=True,
        )
        result = SyncResult(entity="brands", items=self._collect(outcomes))

        logger.info(
            "Brand sync completed",
            total=len(result.items),
            failed=len(result.failures),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return result

    # ========================================================================
    # Categories
    # ========================================================================

    async def sync_categories(self) -> SyncResult:
        """Upsert every remote category by category id.

        Returns:
            Sync result with one entry per category.
        """
        start = time.perf_counter()
        categories = await self._remote(self.catalog.list_categories, "list_categories")

        async def reconcile(values: dict[str, Any]) -> SyncItemResult:
            return await self._reconcile_item(
                "category", values, lambda repo: repo.upsert_category(values)
            )

        outcomes = await asyncio.gather(
            *(
                reconcile(
                    {
                        "category_id": category.category_id,
                        "title": category.name,
                        "url": category.url_path or "",
                        "parent_id": category.parent_id,
                        "order": category.sort_order,
                        "image": category.image_url,
                        "is_visible": category.is_visible,
                        "tree_id": category.tree_id,
                    }
                )
                for category in categories
            ),
            return_exceptions=True,
        )
        result = SyncResult(entity="categories", items=self._collect(outcomes))

        logger.info(
            "Category sync completed",
            total=len(result.items),
            failed=len(result.failures),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return result

    # ========================================================================
    # Channel Products
    # ========================================================================

    async def collect_channel_product_ids(self, channel_id: int) -> list[int]:
        """Collect the ids of every product assigned to a channel.

        Page 1 is fetched first to learn the page count; the remaining pages
        are fetched concurrently, at most ``CHANNEL_PAGE_CONCURRENCY`` at a
        time. Order of the returned ids is not meaningful.

        Args:
            channel_id: Remote channel identifier.

        Returns:
            Unique product ids.
        """
        first = await self._remote(
            lambda: self.catalog.list_channel_product_page(channel_id, 1, CHANNEL_PAGE_SIZE),
            "list_channel_products",
        )
        ids = list(first.product_ids)
        total_pages = first.pagination.total_pages
        if total_pages <= 1:
            return list(dict.fromkeys(ids))

        limiter = asyncio.Semaphore(CHANNEL_PAGE_CONCURRENCY)

        async def fetch_page(page: int) -> list[int]:
            async with limiter:
                result = await self._remote(
                    lambda: self.catalog.list_channel_product_page(
                        channel_id, page, CHANNEL_PAGE_SIZE
                    ),
                    "list_channel_products",
                )
                return result.product_ids

        pages = await asyncio.gather(*(fetch_page(p) for p in range(2, total_pages + 1)))
        for page_ids in pages:
            ids.extend(page_ids)

        logger.info(
            "Channel products collected",
            channel_id=channel_id,
            pages=total_pages,
            products=len(ids),
        )
        return list(dict.fromkeys(ids))

    async def _fetch_products(self, product_ids: list[int]) -> list[RemoteProduct]:
        batches = [
            product_ids[i : i + self.product_batch_size]
            for i in range(0, len(product_ids), self.product_batch_size)
        ]

        async def fetch_batch(batch: list[int]) -> list[RemoteProduct]:
            async with self._batch_limit:
                return await self._remote(
                    lambda: self.catalog.get_products(batch), "get_products"
                )

        results = await asyncio.gather(*(fetch_batch(batch) for batch in batches))
        return [product for batch in results for product in batch]

    async def _quote(self, variant_id: int) -> PriceQuote | None:
        if self.price_client is None:
            return None
        try:
            return await self._remote(
                lambda: self.price_client.get_price(variant_id), "get_price"
            )
        except RemoteClientError as e:
            logger.warning("Price lookup failed", variant_id=variant_id, error=e.message)
            return None

    async def _load_context(self, channel: ChannelConfig) -> dict[str, Any]:
        async with self.session_factory() as session:
            repo = CatalogRepository(session)
            reserve_titles: dict[int, str] = {}
            if channel.reserve is not None:
                children = await repo.get_child_category_ids(channel.reserve)
                reserve_titles = await repo.get_category_titles(children)
            return {"reserve_titles": reserve_titles}

    async def _sync_product(
        self,
        product: RemoteProduct,
        channel_id: int,
        channel: ChannelConfig,
        context: dict[str, Any],
    ) -> SyncItemResult:
        """Reconcile one product with its channel link, categories, options and variants."""
        item = {"id": product.id, "title": product.name}
        try:
            async with self._product_limit:
                options: list[RemoteOption] = await self._remote(
                    lambda: self.catalog.get_product_options(product.id), "get_product_options"
                )
                quotes: dict[int, PriceQuote | None] = {}
                if self.country.uses_price_service:
                    for variant in product.variants:
                        quotes[variant.id] = await self._quote(variant.id)
        except RemoteClientError as e:
            logger.warning("Sync item failed", entity="product", item=item, error=e.message)
            return SyncItemResult.failed(item, e.message)

        async def write(repo: CatalogRepository) -> dict[str, int]:
            product_stock = StockFigures.combine(await repo.get_safe_stock_by_product(product.id))
            sku_stock = await repo.get_safe_stock_by_skus(v.sku for v in product.variants)
            titles = await repo.get_category_titles(product.categories)
            keywords = ", ".join(
                dict.fromkeys(titles[c] for c in product.categories if c in titles)
            )
            first_quote = quotes.get(product.variants[0].id) if product.variants else None

            row = map_product(
                product,
                channel,
                self.country,
                product_stock,
                quote=first_quote,
                reserve_titles=context["reserve_titles"],
            )
            await repo.upsert_product(row)
            await repo.link_channel_product(channel_id, product.id)
            for category_id in product.categories:
                await repo.link_category_product(product.id, category_id)
            for option in options:
                await repo.upsert_option(map_option(option, product.id))
            for variant in product.variants:
                safe = sku_stock.get(variant.sku)
                stock = StockFigures.combine([safe] if safe else [])
                await repo.upsert_variant(
                    map_variant(
                        variant,
                        product,
                        row,
                        self.country,
                        stock,
                        quote=quotes.get(variant.id),
                        keywords=keywords,
                    )
                )
            return {
                "variants": len(product.variants),
                "options": len(options),
                "categories": len(product.categories),
            }

        try:
            counts = await self._write(write)
        except StructuralPersistenceError:
            raise
        except (SQLAlchemyError, ValueError, TypeError, KeyError) as e:
            logger.warning(
                "Sync item failed",
                entity="product",
                item=item,
                error=_error_message(e),
            )
            return SyncItemResult.failed(item, _error_message(e))
        return SyncItemResult.ok({**item, **counts})

    async def _sync_filters(self, channel: ChannelConfig) -> int:
        """Upsert filter rows derived from category assignments.

        Returns:
            Number of filter links written.
        """
        if channel.advanced_filters is None:
            return 0

        async def write(repo: CatalogRepository) -> int:
            links = await repo.find_filter_links(channel.advanced_filters)
            for product_id, category_id in links:
                await repo.link_filter_product(product_id, category_id)
            return len(links)

        return await self._write(write)

    async def _sync_packs(self, channel_id: int, channel: ChannelConfig) -> int:
        """Copy pack stock from the channel's storefront API onto variants.

        Failures are logged and never fail the enclosing product sync.

        Returns:
            Number of variants whose stock was updated.
        """
        if self.packs_client is None or not channel.api_url:
            return 0
        try:
            items = await self._remote(
                lambda: self.packs_client.get_packs(channel.api_url), "get_packs"
            )
            if not items:
                logger.warning("No pack items to update", channel_id=channel_id)
                return 0

            async def write(repo: CatalogRepository) -> int:
                updated = 0
                for item in items:
                    updated += await repo.update_variant_stock(item.variant_id, item.stock)
                return updated

            updated = await self._write(write)
        except (RemoteClientError, StructuralPersistenceError, SQLAlchemyError) as e:
            logger.error("Packs sync failed", channel_id=channel_id, error=_error_message(e))
            return 0

        logger.info("Packs synchronized", channel_id=channel_id, updated=updated)
        return updated

    async def sync_products(self, channel_id: int) -> SyncResult:
        """Reconcile every product assigned to a channel.

        Args:
            channel_id: Remote channel identifier; must be configured.

        Returns:
            Sync result with one entry per product and a stage summary.

        Raises:
            ValidationError: If the channel is not configured.
            RemoteClientError: If the product sweep fails after retries.
            StructuralPersistenceError: On schema mismatch.
        """
        match = self.country.channel_by_id(channel_id)
        if match is None:
            raise ValidationError(
                f"Unknown channel {channel_id}",
                details={"channel_id": channel_id},
            )
        name, channel = match

        start = time.perf_counter()
        logger.info("Product sync started", channel_id=channel_id, channel=name)

        await self._write(lambda repo: repo.upsert_channel({"id": channel_id, "name": name}))

        product_ids = await self.collect_channel_product_ids(channel_id)
        result = SyncResult(entity="products")
        if not product_ids:
            result.summary = {"products": 0, "failed": 0}
            return result

        products = await self._fetch_products(product_ids)
        context = await self._load_context(channel)

        outcomes = await asyncio.gather(
            *(self._sync_product(p, channel_id, channel, context) for p in products),
            return_exceptions=True,
        )
        result.items = self._collect(outcomes)

        try:
            filters = await self._sync_filters(channel)
        except StructuralPersistenceError:
            raise
        except SQLAlchemyError as e:
            logger.warning("Filter sync failed", channel_id=channel_id, error=_error_message(e))
            result.items.append(SyncItemResult.failed({"stage": "filters"}, _error_message(e)))
            filters = 0

        packs = await self._sync_packs(channel_id, channel)

        succeeded = [item.data for item in result.items if not item.error]
        result.summary = {
            "products": len(products),
            "failed": len(result.failures),
            "variants": sum(d.get("variants", 0) for d in succeeded),
            "options": sum(d.get("options", 0) for d in succeeded),
            "categories": sum(d.get("categories", 0) for d in succeeded),
            "filters": filters,
            "packs": packs,
        }

        logger.info(
            "Product sync completed",
            channel_id=channel_id,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            **result.summary,
        )
        return result
