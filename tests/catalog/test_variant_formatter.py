"""Tests for the variant formatter."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.testing import capture_logs

from catalog_api.catalog import CatalogRepository, VariantFormatter
from catalog_api.catalog.models import SafeStock
from catalog_api.domain import RemoteUnavailable
from catalog_api.infrastructure.config import ChannelConfig, CountryConfig
from catalog_api.infrastructure.enrichment_clients import (
    InventoryClient,
    InventoryLevel,
    PriceClient,
    PriceQuote,
)

FORMATTED_FIELDS = {
    "id",
    "product_id",
    "title",
    "main_title",
    "page_title",
    "description",
    "sku",
    "brand_id",
    "brand",
    "image",
    "images",
    "hover",
    "categories",
    "options",
    "related_products",
    "option_label",
    "stock",
    "warning_stock",
    "normal_price",
    "discount_price",
    "cash_price",
    "discount_rate",
    "url",
    "type",
    "quantity",
    "armed_cost",
    "armed_quantity",
    "weight",
    "height",
    "width",
    "depth",
    "sort_order",
    "reserve",
    "reviews",
    "sameday",
    "free_shipping",
    "despacho24horas",
    "featured",
    "pickup_in_store",
    "is_visible",
    "turbo",
    "meta_keywords",
    "meta_description",
    "sizes",
    "tags",
    "campaigns",
    "keywords",
    "variants",
    "packs",
}


def variant_row(variant_id: int = 100, product_id: int = 10, **overrides: object) -> dict:
    row = {
        "id": variant_id,
        "product_id": product_id,
        "title": "Tent",
        "sku": f"T-{variant_id}",
        "normal_price": 1000,
        "discount_price": 800,
        "cash_price": 784,
        "stock": 3,
        "quantity": 3,
        "image": "v.jpg",
        "images": [],
        "categories": [5],
        "options": [{"id": 1, "label": "M"}],
        "related_products": [11],
        "width": 40,
        "depth": 30,
        "height": 20,
        "weight": 5,
        "keywords": "Tents",
    }
    row.update(overrides)
    return row


async def seed_catalog(session: AsyncSession) -> CatalogRepository:
    repo = CatalogRepository(session)
    await repo.upsert_brand({"id": 1, "name": "Acme"})
    for category_id, title, parent_id in [
        (5, "Tents", 1),
        (40, "Benefits", 1),
        (401, "Free shipping", 40),
        (41, "Campaigns", 1),
        (411, "Cyber", 41),
    ]:
        await repo.upsert_category(
            {"category_id": category_id, "title": title, "parent_id": parent_id}
        )
    await repo.upsert_product(
        {
            "id": 10,
            "title": "Mountain Tent",
            "page_title": "Mountain Tent | Acme",
            "description": "Two person tent",
            "brand_id": 1,
            "image": "p.jpg",
            "hover": "hover.jpg",
            "url": "/mountain-tent/",
            "sameday": True,
            "meta_keywords": ["tent", "camping"],
            "sizes": {"santiago": {"small": False, "medium": True, "big": False}},
        }
    )
    for category_id in (5, 401, 411):
        await repo.link_category_product(10, category_id)
    await repo.link_filter_product(10, 50)
    await repo.upsert_variant(variant_row())
    await session.commit()
    return repo


@pytest.fixture
def benefit_channel() -> ChannelConfig:
    return ChannelConfig(id=1, benefits=40, campaigns=41)


class TestFormatting:
    """Tests for the formatted variant shape."""

    @pytest.mark.asyncio
    async def test_full_shape(
        self, session: AsyncSession, country: CountryConfig, benefit_channel: ChannelConfig
    ) -> None:
        repo = await seed_catalog(session)
        formatter = VariantFormatter(repo, country, channel=benefit_channel)

        [record] = await formatter.format(await repo.list_variants_by_product(10))

        assert FORMATTED_FIELDS <= set(record)
        assert record["main_title"] == "Mountain Tent"
        assert record["page_title"] == "Mountain Tent | Acme"
        assert record["brand"] == "Acme"
        assert record["discount_rate"] == "20%"
        assert record["weight"] == 6
        assert record["images"] == ["v.jpg"]
        assert record["hover"] == "hover.jpg"
        assert record["options"] == [{"id": 1, "label": "M"}]
        assert record["related_products"] == [11]
        assert record["tags"] == ["Free shipping"]
        assert record["campaigns"] == ["Cyber"]
        assert record["sameday"] is True
        assert record["meta_keywords"] == ["tent", "camping"]
        assert record["sizes"]["santiago"]["medium"] is True
        assert "filters" not in record

    @pytest.mark.asyncio
    async def test_include_filters(self, session: AsyncSession, country: CountryConfig) -> None:
        repo = await seed_catalog(session)
        formatter = VariantFormatter(repo, country)

        [record] = await formatter.format(
            await repo.list_variants_by_product(10), include_filters=True
        )

        assert record["filters"] == [50]

    @pytest.mark.asyncio
    async def test_malformed_options_degrade_to_empty(
        self, session: AsyncSession, country: CountryConfig
    ) -> None:
        """One unparsable field never fails the record or the batch."""
        repo = await seed_catalog(session)
        await repo.upsert_variant(
            variant_row(101, options="{not json", categories="oops", related_products="[1,")
        )
        await session.commit()
        formatter = VariantFormatter(repo, country)

        records = await formatter.format(await repo.list_variants_by_product(10))

        assert [r["id"] for r in records] == [100, 101]
        broken = records[1]
        assert broken["options"] == []
        assert broken["categories"] == []
        assert broken["related_products"] == []
        assert broken["main_title"] == "Mountain Tent"

    @pytest.mark.asyncio
    async def test_image_fallback_to_product(
        self, session: AsyncSession, country: CountryConfig
    ) -> None:
        repo = await seed_catalog(session)
        await repo.upsert_variant(variant_row(102, image="", images=None))
        await session.commit()
        formatter = VariantFormatter(repo, country)

        records = await formatter.format(await repo.list_variants_by_product(10))

        assert records[1]["image"] == "p.jpg"
        assert records[1]["images"] == ["p.jpg"]

    @pytest.mark.asyncio
    async def test_peru_weight(self, session: AsyncSession) -> None:
        repo = await seed_catalog(session)
        formatter = VariantFormatter(repo, CountryConfig(country_code="PE"))

        [record] = await formatter.format(await repo.list_variants_by_product(10))

        assert record["weight"] == 5

    @pytest.mark.asyncio
    async def test_empty_batch(self, session: AsyncSession, country: CountryConfig) -> None:
        formatter = VariantFormatter(CatalogRepository(session), country)
        assert await formatter.format([]) == []

    def test_rejects_unknown_orphan_policy(self, country: CountryConfig) -> None:
        with pytest.raises(ValueError):
            VariantFormatter(MagicMock(spec=CatalogRepository), country, orphan_policy="ignore")


class TestOrphanVariants:
    """Tests for variants whose product row is missing."""

    async def _orphans(self, session: AsyncSession) -> CatalogRepository:
        repo = await seed_catalog(session)
        await repo.upsert_variant(variant_row(200, product_id=999, title="Lonely"))
        await session.commit()
        return repo

    @pytest.mark.asyncio
    async def test_tolerate(self, session: AsyncSession, country: CountryConfig) -> None:
        repo = await self._orphans(session)
        formatter = VariantFormatter(repo, country, orphan_policy="tolerate")

        with capture_logs() as logs:
            [record] = await formatter.format(await repo.list_variants_by_product(999))

        assert record["main_title"] == "Lonely"
        assert record["brand"] is None
        assert record["url"] is None
        assert any(log["event"] == "Orphan variant" for log in logs)

    @pytest.mark.asyncio
    async def test_skip(self, session: AsyncSession, country: CountryConfig) -> None:
        repo = await self._orphans(session)
        formatter = VariantFormatter(repo, country, orphan_policy="skip")

        variants = [*await repo.list_variants_by_product(10), *await repo.list_variants_by_product(999)]
        records = await formatter.format(variants)

        assert [r["id"] for r in records] == [100]

    @pytest.mark.asyncio
    async def test_error_logs_at_error_level(
        self, session: AsyncSession, country: CountryConfig
    ) -> None:
        repo = await self._orphans(session)
        formatter = VariantFormatter(repo, country, orphan_policy="error")

        with capture_logs() as logs:
            records = await formatter.format(await repo.list_variants_by_product(999))

        assert records == []
        orphan_logs = [log for log in logs if log["event"] == "Orphan variant"]
        assert orphan_logs[0]["log_level"] == "error"
        assert orphan_logs[0]["product_id"] == 999


class TestEnrichment:
    """Tests for live price and stock enrichment."""

    @pytest.mark.asyncio
    async def test_overlays_price_and_stock(
        self, session: AsyncSession, colombia: CountryConfig
    ) -> None:
        repo = await seed_catalog(session)
        price_client = AsyncMock(spec=PriceClient)
        price_client.get_price.return_value = PriceQuote(price=1000, calculated_price=750)
        inventory_client = AsyncMock(spec=InventoryClient)
        inventory_client.get_inventory.return_value = InventoryLevel(
            available_to_sell=4, safety_stock=1, warning_level=0
        )
        formatter = VariantFormatter(
            repo, colombia, price_client=price_client, inventory_client=inventory_client
        )

        [record] = await formatter.format(await repo.list_variants_by_product(10), enrich=True)

        price_client.get_price.assert_awaited_once_with(100)
        assert record["normal_price"] == 1000
        assert record["discount_price"] == 750
        assert record["cash_price"] == 735
        assert record["discount_rate"] == "25%"
        assert record["stock"] == 4
        assert record["warning_stock"] == 1

    @pytest.mark.asyncio
    async def test_chile_skips_price_service(
        self, session: AsyncSession, country: CountryConfig
    ) -> None:
        repo = await seed_catalog(session)
        price_client = AsyncMock(spec=PriceClient)
        formatter = VariantFormatter(repo, country, price_client=price_client)

        [record] = await formatter.format(await repo.list_variants_by_product(10), enrich=True)

        price_client.get_price.assert_not_awaited()
        assert record["normal_price"] == 1000

    @pytest.mark.asyncio
    async def test_safe_stock_without_inventory_client(
        self, session: AsyncSession, country: CountryConfig
    ) -> None:
        repo = await seed_catalog(session)
        session.add(SafeStock(sku="T-100", product_id=10, safety_stock=2, available_to_sell=9))
        await session.commit()
        formatter = VariantFormatter(repo, country)

        [record] = await formatter.format(await repo.list_variants_by_product(10), enrich=True)

        assert record["stock"] == 9
        assert record["warning_stock"] == 2

    @pytest.mark.asyncio
    async def test_failures_keep_stored_values(
        self, session: AsyncSession, colombia: CountryConfig
    ) -> None:
        repo = await seed_catalog(session)
        price_client = AsyncMock(spec=PriceClient)
        price_client.get_price.side_effect = RemoteUnavailable("prices", "timed out")
        inventory_client = AsyncMock(spec=InventoryClient)
        inventory_client.get_inventory.side_effect = RemoteUnavailable("inventory", "down")
        formatter = VariantFormatter(
            repo, colombia, price_client=price_client, inventory_client=inventory_client
        )

        [record] = await formatter.format(await repo.list_variants_by_product(10), enrich=True)

        assert record["normal_price"] == 1000
        assert record["discount_price"] == 800
        assert record["stock"] == 3
