"""Tests for the catalog synchronization service."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog.testing import capture_logs

from catalog_api.application import SyncService, is_structural_error
from catalog_api.application.sync_service import CHANNEL_PAGE_CONCURRENCY
from catalog_api.catalog import CatalogRepository
from catalog_api.catalog.models import (
    Brand,
    Category,
    CategoryProduct,
    Channel,
    ChannelProduct,
    FiltersProduct,
    Product,
    ProductOption,
    Variant,
)
from catalog_api.domain import (
    RemoteError,
    StructuralPersistenceError,
    ValidationError,
)
from catalog_api.infrastructure.bigcommerce_client import BigCommerceClient
from catalog_api.infrastructure.config import ChannelConfig, CountryConfig
from catalog_api.infrastructure.enrichment_clients import PacksClient, PriceClient


class FakeBigCommerce:
    """In-memory BigCommerce store served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.brands: list[dict[str, Any]] = []
        self.categories: list[dict[str, Any]] = []
        self.channel_pages: list[list[int]] = [[]]
        self.page_delays: dict[int, float] = {}
        self.products: dict[int, dict[str, Any]] = {}
        self.options: dict[int, list[dict[str, Any]]] = {}
        self.status_overrides: dict[str, list[int]] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.options_delay = 0.0
        self.options_in_flight = 0
        self.max_options_in_flight = 0

    def _override(self, path: str) -> httpx.Response | None:
        statuses = self.status_overrides.get(path)
        if statuses:
            return httpx.Response(statuses.pop(0), text="upstream failure")
        return None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        params = request.url.params
        override = self._override(path)
        if override is not None:
            return override

        if path == "/v3/catalog/brands":
            return httpx.Response(200, json={"data": self.brands, "meta": {"pagination": {"total_pages": 1}}})
        if path == "/v3/catalog/trees/categories":
            return httpx.Response(200, json={"data": self.categories, "meta": {"pagination": {"total_pages": 1}}})
        if path == "/v3/catalog/products/channel-assignments":
            page = int(params["page"])
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                await asyncio.sleep(self.page_delays.get(page, 0))
            finally:
                self.in_flight -= 1
            channel_id = int(params["channel_id:in"])
            data = [{"product_id": pid, "channel_id": channel_id} for pid in self.channel_pages[page - 1]]
            return httpx.Response(
                200,
                json={
                    "data": data,
                    "meta": {"pagination": {"current_page": page, "total_pages": len(self.channel_pages)}},
                },
            )
        if path == "/v3/catalog/products":
            ids = [int(pid) for pid in params["id:in"].split(",")]
            return httpx.Response(200, json={"data": [self.products[i] for i in ids if i in self.products]})
        if path.endswith("/options"):
            product_id = int(path.split("/")[-2])
            self.options_in_flight += 1
            self.max_options_in_flight = max(self.max_options_in_flight, self.options_in_flight)
            try:
                await asyncio.sleep(self.options_delay)
            finally:
                self.options_in_flight -= 1
            return httpx.Response(200, json={"data": self.options.get(product_id, [])})
        return httpx.Response(404)

    def client(self) -> BigCommerceClient:
        return BigCommerceClient(
            base_url="https://bc.test",
            access_token="token",
            transport=httpx.MockTransport(self.handler),
        )


def remote_product(product_id: int, url: str, categories: list[int]) -> dict[str, Any]:
    return {
        "id": product_id,
        "name": f"Tent {product_id}",
        "brand_id": 1,
        "price": 1000,
        "sale_price": 800,
        "inventory_level": 9,
        "categories": categories,
        "custom_url": {"url": url},
        "images": [{"url_standard": "t.jpg", "url_zoom": "t-z.jpg", "is_thumbnail": True}],
        "variants": [
            {
                "id": product_id * 10,
                "product_id": product_id,
                "sku": f"SKU-{product_id}-A",
                "price": 1000,
                "sale_price": 800,
                "inventory_level": 4,
                "option_values": [{"id": 1, "label": "Blue"}],
            },
            {
                "id": product_id * 10 + 1,
                "product_id": product_id,
                "sku": f"SKU-{product_id}-B",
                "price": 1000,
                "inventory_level": 5,
            },
        ],
    }


async def count(session_factory: async_sessionmaker[AsyncSession], model: type) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


@pytest.fixture
def fake() -> FakeBigCommerce:
    return FakeBigCommerce()


@pytest.fixture
def make_service(
    session_factory: async_sessionmaker[AsyncSession],
    fake: FakeBigCommerce,
    country: CountryConfig,
):
    def build(country_config: CountryConfig | None = None, **kwargs: Any) -> SyncService:
        options = {
            "write_concurrency": 1,
            "retry_attempts": 2,
            "retry_base_delay": 0,
            "product_batch_size": 20,
            "product_batch_concurrency": 2,
        }
        options.update(kwargs)
        return SyncService(session_factory, fake.client(), country_config or country, **options)

    return build


class TestIsStructuralError:
    """Tests for persistence error classification."""

    def test_programming_error(self) -> None:
        assert is_structural_error(ProgrammingError("INSERT", {}, Exception("syntax")))

    @pytest.mark.parametrize(
        "message",
        ["no such column: brands.slug", "no such table: options", "table brands has no column named x"],
    )
    def test_schema_operational_errors(self, message: str) -> None:
        assert is_structural_error(OperationalError("INSERT", {}, Exception(message)))

    def test_other_operational_errors(self) -> None:
        assert not is_structural_error(OperationalError("INSERT", {}, Exception("database is locked")))

    def test_integrity_error(self) -> None:
        assert not is_structural_error(IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed")))


class TestSyncBrands:
    """Tests for brand reconciliation."""

    @pytest.mark.asyncio
    async def test_insert_then_update_in_place(
        self, fake: FakeBigCommerce, make_service, session_factory
    ) -> None:
        fake.brands = [{"id": 1, "name": "Acme"}]
        result = await make_service().sync_brands()

        assert result.success
        async with session_factory() as session:
            assert (await session.get(Brand, 1)).name == "Acme"

        fake.brands = [{"id": 1, "name": "Acme Inc"}]
        await make_service().sync_brands()

        assert await count(session_factory, Brand) == 1
        async with session_factory() as session:
            assert (await session.get(Brand, 1)).name == "Acme Inc"

    @pytest.mark.asyncio
    async def test_idempotent(self, fake: FakeBigCommerce, make_service, session_factory) -> None:
        fake.brands = [{"id": 1, "name": "Acme"}, {"id": 2, "name": "Zed"}]

        await make_service().sync_brands()
        async with session_factory() as session:
            first = [b.to_dict() for b in await CatalogRepository(session).list_brands()]
        await make_service().sync_brands()
        async with session_factory() as session:
            second = [b.to_dict() for b in await CatalogRepository(session).list_brands()]

        assert first == second
        assert len(second) == 2

    @pytest.mark.asyncio
    async def test_partial_failure_is_isolated(
        self, fake: FakeBigCommerce, make_service, session_factory
    ) -> None:
        """One brand violating a constraint does not abort the others."""
        fake.brands = [{"id": 1, "name": "Acme"}, {"id": 2, "name": None}, {"id": 3, "name": "Zed"}]

        result = await make_service().sync_brands()

        assert result.success is False
        assert len(result.items) == 3
        [failure] = result.failures
        assert failure.data == {"id": 2, "name": None}
        assert failure.message
        assert await count(session_factory, Brand) == 2

    @pytest.mark.asyncio
    async def test_structural_error_aborts(
        self, fake: FakeBigCommerce, make_service, session_factory
    ) -> None:
        async with session_factory() as session:
            await session.execute(text("DROP TABLE brands"))
            await session.commit()
        fake.brands = [{"id": 1, "name": "Acme"}]

        with pytest.raises(StructuralPersistenceError) as exc_info:
            await make_service().sync_brands()
        assert "no such table" in exc_info.value.details["error"]

    @pytest.mark.asyncio
    async def test_remote_failure_after_retries(self, fake: FakeBigCommerce, make_service) -> None:
        fake.status_overrides["/v3/catalog/brands"] = [503, 503]

        with pytest.raises(RemoteError):
            await make_service(retry_attempts=2).sync_brands()

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(
        self, fake: FakeBigCommerce, make_service, session_factory
    ) -> None:
        fake.brands = [{"id": 1, "name": "Acme"}]
        fake.status_overrides["/v3/catalog/brands"] = [429]

        result = await make_service(retry_attempts=2).sync_brands()

        assert result.success
        assert await count(session_factory, Brand) == 1


class TestSyncCategories:
    """Tests for category reconciliation."""

    @pytest.mark.asyncio
    async def test_sync_categories(self, fake: FakeBigCommerce, make_service, session_factory) -> None:
        fake.categories = [
            {"category_id": 5, "parent_id": 0, "name": "Tents", "url": {"path": "/tents/"}, "sort_order": 2},
            {"category_id": 6, "parent_id": 5, "name": "Domes", "url": {"path": "/tents/domes/"}},
        ]

        result = await make_service().sync_categories()
        await make_service().sync_categories()

        assert result.success
        assert await count(session_factory, Category) == 2
        async with session_factory() as session:
            domes = await session.get(Category, 6)
        assert domes.parent_id == 5
        assert domes.url == "/tents/domes/"


class TestChannelSweep:
    """Tests for collecting a channel's product ids."""

    @pytest.mark.asyncio
    async def test_five_pages_with_varying_latency(self, fake: FakeBigCommerce, make_service) -> None:
        fake.channel_pages = [list(range(n * 200 + 1, n * 200 + 201)) for n in range(5)]
        fake.page_delays = {1: 0.0, 2: 0.05, 3: 0.0, 4: 0.02, 5: 0.01}

        ids = await make_service().collect_channel_product_ids(1)

        assert len(ids) == 1000
        assert set(ids) == set(range(1, 1001))

    @pytest.mark.asyncio
    async def test_fan_out_is_bounded(self, fake: FakeBigCommerce, make_service) -> None:
        fake.channel_pages = [[n] for n in range(1, 41)]
        fake.page_delays = {n: 0.01 for n in range(2, 41)}

        ids = await make_service().collect_channel_product_ids(1)

        assert sorted(ids) == list(range(1, 41))
        assert fake.max_in_flight <= CHANNEL_PAGE_CONCURRENCY

    @pytest.mark.asyncio
    async def test_duplicates_are_merged(self, fake: FakeBigCommerce, make_service) -> None:
        fake.channel_pages = [[1, 2], [2, 3], [3, 1]]

        ids = await make_service().collect_channel_product_ids(1)

        assert sorted(ids) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_empty_channel(self, fake: FakeBigCommerce, make_service) -> None:
        assert await make_service().collect_channel_product_ids(1) == []


class TestSyncProducts:
    """Tests for the channel product sync."""

    async def _seed_categories(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        async with session_factory() as session:
            repo = CatalogRepository(session)
            for category_id, title, parent_id in [
                (5, "Tents", 1),
                (900, "Filters", 1),
                (901, "Color", 900),
                (50, "Blue", 901),
            ]:
                await repo.upsert_category(
                    {"category_id": category_id, "title": title, "parent_id": parent_id}
                )
            await session.commit()

    @pytest.mark.asyncio
    async def test_end_to_end(self, fake: FakeBigCommerce, make_service, session_factory) -> None:
        await self._seed_categories(session_factory)
        fake.channel_pages = [[10]]
        fake.products = {10: remote_product(10, "/tent-10/", [5, 50, 20])}
        fake.options = {10: [{"id": 3, "product_id": 10, "display_name": "Color", "option_values": [{"id": 1, "label": "Blue"}]}]}

        result = await make_service().sync_products(1)

        assert result.success, result.to_dict()
        assert result.summary == {
            "products": 1,
            "failed": 0,
            "variants": 2,
            "options": 1,
            "categories": 3,
            "filters": 1,
            "packs": 0,
        }
        async with session_factory() as session:
            product = await session.get(Product, 10)
            variant = await session.get(Variant, 100)
            channel = await session.get(Channel, 1)
        assert product.sameday is True
        assert product.percent == "20%"
        assert product.url == "/tent-10/"
        assert variant.keywords == "Tents, Blue"
        assert variant.option_label == "Blue"
        assert variant.options == [{"id": 1, "label": "Blue"}]
        assert channel.name == "UF"

        await make_service().sync_products(1)

        assert await count(session_factory, Product) == 1
        assert await count(session_factory, Variant) == 2
        assert await count(session_factory, ProductOption) == 1
        assert await count(session_factory, ChannelProduct) == 1
        assert await count(session_factory, CategoryProduct) == 3
        assert await count(session_factory, FiltersProduct) == 1

    @pytest.mark.asyncio
    async def test_failed_product_does_not_abort(
        self, fake: FakeBigCommerce, make_service, session_factory
    ) -> None:
        """Two products claiming one storefront URL: one is written, one is reported."""
        fake.channel_pages = [[10, 11]]
        fake.products = {
            10: remote_product(10, "/same/", [5]),
            11: remote_product(11, "/same/", [5]),
        }

        result = await make_service().sync_products(1)

        assert result.success is False
        assert result.summary["failed"] == 1
        assert len(result.failures) == 1
        assert await count(session_factory, Product) == 1

    @pytest.mark.asyncio
    async def test_remote_option_failure_is_captured(
        self, fake: FakeBigCommerce, make_service, session_factory
    ) -> None:
        fake.channel_pages = [[10, 12]]
        fake.products = {
            10: remote_product(10, "/tent-10/", [5]),
            12: remote_product(12, "/tent-12/", [5]),
        }
        fake.status_overrides["/v3/catalog/products/12/options"] = [404]

        result = await make_service().sync_products(1)

        [failure] = result.failures
        assert failure.data["id"] == 12
        assert await count(session_factory, Product) == 1

    @pytest.mark.asyncio
    async def test_structural_error_aborts(
        self, fake: FakeBigCommerce, make_service, session_factory
    ) -> None:
        async with session_factory() as session:
            await session.execute(text("DROP TABLE options"))
            await session.commit()
        fake.channel_pages = [[10]]
        fake.products = {10: remote_product(10, "/tent-10/", [5])}
        fake.options = {10: [{"id": 3, "product_id": 10, "display_name": "Color"}]}

        with pytest.raises(StructuralPersistenceError):
            await make_service().sync_products(1)

    @pytest.mark.asyncio
    async def test_unknown_channel(self, make_service) -> None:
        with pytest.raises(ValidationError):
            await make_service().sync_products(31337)

    @pytest.mark.asyncio
    async def test_empty_channel(self, make_service, session_factory) -> None:
        result = await make_service().sync_products(1)

        assert result.success
        assert result.summary == {"products": 0, "failed": 0}
        assert await count(session_factory, Channel) == 1

    @pytest.mark.asyncio
    async def test_price_service_country(
        self,
        fake: FakeBigCommerce,
        make_service,
        session_factory,
        colombia: CountryConfig,
    ) -> None:
        """Outside Chile prices come from the price service; unpriced variants are hidden."""

        def prices(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/price/100/7":
                return httpx.Response(200, json={"price": 2000, "calculatedPrice": 1500})
            return httpx.Response(503)

        fake.channel_pages = [[10]]
        fake.products = {10: remote_product(10, "/tent-10/", [5])}
        price_client = PriceClient(
            "http://prices.test", list_price_id=7, transport=httpx.MockTransport(prices)
        )

        result = await make_service(colombia, price_client=price_client).sync_products(1)

        assert result.success
        async with session_factory() as session:
            product = await session.get(Product, 10)
            priced = await session.get(Variant, 100)
            unpriced = await session.get(Variant, 101)
        assert product.normal_price == 2000
        assert product.is_visible is True
        assert priced.discount_price == 1500
        assert priced.discount_rate == "25%"
        assert unpriced.normal_price == 0
        assert unpriced.is_visible is False


class TestSyncTuning:
    """Tests for explicit sync tuning overrides."""

    @pytest.mark.asyncio
    async def test_zero_retry_attempts_makes_a_single_call(
        self, fake: FakeBigCommerce, make_service
    ) -> None:
        fake.brands = [{"id": 1, "name": "Acme"}]
        fake.status_overrides["/v3/catalog/brands"] = [503]

        with pytest.raises(RemoteError):
            await make_service(retry_attempts=0).sync_brands()

    @pytest.mark.asyncio
    async def test_zero_max_delay_is_honored(self, fake: FakeBigCommerce, make_service) -> None:
        fake.brands = [{"id": 1, "name": "Acme"}]
        fake.status_overrides["/v3/catalog/brands"] = [503]

        with patch("catalog_api.application.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await make_service(
                retry_attempts=2, retry_base_delay=1, retry_max_delay=0
            ).sync_brands()

        assert result.success
        sleep.assert_awaited_once_with(0)


class TestChannelSweepEdges:
    """Tests for unusual channel assignment pages."""

    @pytest.mark.asyncio
    async def test_empty_first_page_with_more_pages(
        self, fake: FakeBigCommerce, make_service
    ) -> None:
        fake.channel_pages = [[], [7, 8]]

        ids = await make_service().collect_channel_product_ids(1)

        assert sorted(ids) == [7, 8]


class TestProductFanOut:
    """Tests for the per-product remote stage."""

    @pytest.mark.asyncio
    async def test_options_requests_are_bounded(
        self, fake: FakeBigCommerce, make_service, session_factory
    ) -> None:
        fake.channel_pages = [list(range(1, 61))]
        fake.products = {pid: remote_product(pid, f"/tent-{pid}/", [5]) for pid in range(1, 61)}
        fake.options_delay = 0.02

        result = await make_service(product_concurrency=4).sync_products(1)

        assert result.success, result.to_dict()
        assert result.summary["products"] == 60
        assert 1 <= fake.max_options_in_flight <= 4
        assert await count(session_factory, Product) == 60


class TestSyncPacks:
    """Tests for copying pack stock after a product sync."""

    @pytest.fixture
    def packs_country(self, channel: ChannelConfig) -> CountryConfig:
        return CountryConfig(
            country_code="CL",
            inventory_location_id=3,
            channels={"UF": channel.model_copy(update={"api_url": "https://uf.test"})},
        )

    @pytest.mark.asyncio
    async def test_pack_stock_is_applied(
        self, fake: FakeBigCommerce, make_service, session_factory, packs_country: CountryConfig
    ) -> None:
        seen: list[httpx.Request] = []

        def packs(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json=[{"variant_id": 100, "stock": 42}, {"variant_id": 999, "stock": 1}]
            )

        fake.channel_pages = [[10]]
        fake.products = {10: remote_product(10, "/tent-10/", [5])}
        packs_client = PacksClient(api_key="secret", transport=httpx.MockTransport(packs))

        result = await make_service(packs_country, packs_client=packs_client).sync_products(1)

        assert result.success
        assert result.summary["packs"] == 1
        assert str(seen[0].url) == "https://uf.test/api/packs"
        async with session_factory() as session:
            assert (await session.get(Variant, 100)).stock == 42
            assert await session.get(Variant, 999) is None

    @pytest.mark.asyncio
    async def test_pack_failure_does_not_fail_the_sync(
        self, fake: FakeBigCommerce, make_service, packs_country: CountryConfig
    ) -> None:
        fake.channel_pages = [[10]]
        fake.products = {10: remote_product(10, "/tent-10/", [5])}
        packs_client = PacksClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(404))
        )

        with capture_logs() as logs:
            result = await make_service(packs_country, packs_client=packs_client).sync_products(1)

        assert result.success
        assert result.summary["packs"] == 0
        assert any(log["event"] == "Packs sync failed" for log in logs)

    @pytest.mark.asyncio
    async def test_channel_without_packs_api(
        self, fake: FakeBigCommerce, make_service
    ) -> None:
        fake.channel_pages = [[10]]
        fake.products = {10: remote_product(10, "/tent-10/", [5])}
        packs_client = PacksClient(
            transport=httpx.MockTransport(lambda request: pytest.fail("packs requested"))
        )

        result = await make_service(packs_client=packs_client).sync_products(1)

        assert result.summary["packs"] == 0
