"""Catalog repository for database operations.

Explicit query and upsert functions over the mirrored catalog tables.
Upserts are single INSERT .. ON CONFLICT statements, so each key is
written atomically by the database.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

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
from catalog_api.infrastructure.database import Base


class CatalogRepository:
    """Repository for catalog database operations.

    Example usage:
        async with async_session_factory() as session:
            repo = CatalogRepository(session)
            await repo.upsert_brand({"id": 1, "name": "Acme"})
            await session.commit()
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    # ========================================================================
    # Upserts
    # ========================================================================

    def _insert(self, model: type[Base]) -> Any:
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            return sqlite_insert(model)
        return pg_insert(model)

    async def _upsert(
        self,
        model: type[Base],
        values: dict[str, Any],
        index_elements: list[str],
    ) -> None:
        """Insert a row or update its mutable columns when the key exists.

        Args:
            model: Mapped model class.
            values: Column values, including the key columns.
            index_elements: Columns of the natural key.
        """
        statement = self._insert(model).values(**values)
        update_columns = {
            key: statement.excluded[key]
            for key in values
            if key not in index_elements
        }
        if update_columns:
            statement = statement.on_conflict_do_update(
                index_elements=index_elements,
                set_=update_columns,
            )
        else:
            statement = statement.on_conflict_do_nothing(index_elements=index_elements)
        await self.session.execute(statement)

    async def upsert_brand(self, values: dict[str, Any]) -> None:
        await self._upsert(Brand, values, ["id"])

    async def upsert_category(self, values: dict[str, Any]) -> None:
        await self._upsert(Category, values, ["category_id"])

    async def upsert_channel(self, values: dict[str, Any]) -> None:
        await self._upsert(Channel, values, ["id"])

    async def upsert_product(self, values: dict[str, Any]) -> None:
        await self._upsert(Product, values, ["id"])

    async def upsert_variant(self, values: dict[str, Any]) -> None:
        await self._upsert(Variant, values, ["id"])

    async def upsert_option(self, values: dict[str, Any]) -> None:
        await self._upsert(ProductOption, values, ["product_id", "option_id"])

    async def link_channel_product(self, channel_id: int, product_id: int) -> None:
        await self._upsert(
            ChannelProduct,
            {"channel_id": channel_id, "product_id": product_id},
            ["channel_id", "product_id"],
        )

    async def link_category_product(self, product_id: int, category_id: int) -> None:
        await self._upsert(
            CategoryProduct,
            {"product_id": product_id, "category_id": category_id},
            ["product_id", "category_id"],
        )

    async def link_filter_product(self, product_id: int, category_id: int) -> None:
        await self._upsert(
            FiltersProduct,
            {"product_id": product_id, "category_id": category_id},
            ["product_id", "category_id"],
        )

    # ========================================================================
    # Brands
    # ========================================================================

    async def list_brands(self) -> Sequence[Brand]:
        result = await self.session.execute(select(Brand).order_by(Brand.id))
        return result.scalars().all()

    async def get_brand(self, brand_id: int) -> Brand | None:
        return await self.session.get(Brand, brand_id)

    async def get_brands_by_ids(self, brand_ids: Iterable[int]) -> dict[int, Brand]:
        ids = {bid for bid in brand_ids if bid is not None}
        if not ids:
            return {}
        result = await self.session.execute(select(Brand).where(Brand.id.in_(ids)))
        return {brand.id: brand for brand in result.scalars()}

    async def count_products_by_brand(self, brand_id: int) -> int:
        """Count products of a brand.

        Args:
            brand_id: Brand identifier.

        Returns:
            Number of products with this brand.
        """
        result = await self.session.execute(
            select(func.count()).select_from(Product).where(Product.brand_id == brand_id)
        )
        return result.scalar_one()

    # ========================================================================
    # Categories
    # ========================================================================

    async def list_categories(self) -> Sequence[Category]:
        result = await self.session.execute(
            select(Category).order_by(Category.order, Category.category_id)
        )
        return result.scalars().all()

    async def get_category(self, category_id: int) -> Category | None:
        return await self.session.get(Category, category_id)

    async def get_child_category_ids(self, parent_id: int) -> list[int]:
        """Ids of the direct children of a category.

        Args:
            parent_id: Parent category identifier.

        Returns:
            Child category ids.
        """
        result = await self.session.execute(
            select(Category.category_id).where(Category.parent_id == parent_id)
        )
        return list(result.scalars())

    async def get_category_titles(self, category_ids: Iterable[int]) -> dict[int, str]:
        ids = set(category_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Category.category_id, Category.title).where(Category.category_id.in_(ids))
        )
        return {row.category_id: row.title for row in result}

    async def get_product_category_ids(
        self, product_ids: Iterable[int]
    ) -> dict[int, list[int]]:
        """Category ids assigned to each product.

        Args:
            product_ids: Product identifiers.

        Returns:
            Mapping of product id to its category ids.
        """
        return await self._links_by_product(CategoryProduct, product_ids)

    async def get_filter_category_ids(
        self, product_ids: Iterable[int]
    ) -> dict[int, list[int]]:
        """Filter category ids assigned to each product."""
        return await self._links_by_product(FiltersProduct, product_ids)

    async def _links_by_product(
        self,
        model: type[CategoryProduct] | type[FiltersProduct],
        product_ids: Iterable[int],
    ) -> dict[int, list[int]]:
        ids = set(product_ids)
        links: dict[int, list[int]] = defaultdict(list)
        if not ids:
            return links
        result = await self.session.execute(
            select(model.product_id, model.category_id)
            .where(model.product_id.in_(ids))
            .order_by(model.category_id)
        )
        for row in result:
            links[row.product_id].append(row.category_id)
        return links

    async def find_filter_links(self, filters_root: int) -> list[tuple[int, int]]:
        """Category assignments that count as storefront filters.

        A filter category is a grandchild of ``filters_root``: the root's
        children are filter groups and their children are filter values.

        Args:
            filters_root: Category id of the advanced filters root.

        Returns:
            (product_id, category_id) pairs.
        """
        groups = select(Category.category_id).where(Category.parent_id == filters_root)
        values = select(Category.category_id).where(Category.parent_id.in_(groups))
        result = await self.session.execute(
            select(CategoryProduct.product_id, CategoryProduct.category_id).where(
                CategoryProduct.category_id.in_(values)
            )
        )
        return [(row.product_id, row.category_id) for row in result]

    # ========================================================================
    # Products
    # ========================================================================

    async def list_products(self) -> Sequence[Product]:
        result = await self.session.execute(select(Product).order_by(Product.id))
        return result.scalars().all()

    async def get_product(self, product_id: int) -> Product | None:
        return await self.session.get(Product, product_id)

    async def get_products_by_ids(self, product_ids: Iterable[int]) -> dict[int, Product]:
        ids = set(product_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(Product).where(Product.id.in_(ids)))
        return {product.id: product for product in result.scalars()}

    # ========================================================================
    # Variants
    # ========================================================================

    async def list_variants_page(
        self,
        offset: int,
        limit: int,
        channel_id: int | None = None,
    ) -> tuple[Sequence[Variant], int]:
        """Page of variants, optionally limited to products of one channel.

        Args:
            offset: Rows to skip.
            limit: Maximum rows to return.
            channel_id: Optional remote channel id filter.

        Returns:
            Tuple of (variants, total count).
        """
        query = select(Variant)
        if channel_id is not None:
            query = query.join(
                ChannelProduct, ChannelProduct.product_id == Variant.product_id
            ).where(ChannelProduct.channel_id == channel_id)

        count_result = await self.session.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar_one()

        result = await self.session.execute(
            query.order_by(Variant.id).offset(offset).limit(limit)
        )
        return result.scalars().all(), total

    async def get_visible_variants_by_ids(self, variant_ids: Iterable[int]) -> Sequence[Variant]:
        """Visible variants of visible products, by variant id.

        Args:
            variant_ids: Variant identifiers.

        Returns:
            Matching variants ordered by id.
        """
        ids = set(variant_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Variant)
            .join(Product, Product.id == Variant.product_id)
            .where(
                Variant.id.in_(ids),
                Variant.is_visible.is_(True),
                Product.is_visible.is_(True),
            )
            .order_by(Variant.id)
        )
        return result.scalars().all()

    async def list_variants_by_product(self, product_id: int) -> Sequence[Variant]:
        result = await self.session.execute(
            select(Variant).where(Variant.product_id == product_id).order_by(Variant.id)
        )
        return result.scalars().all()

    async def update_variant_stock(self, variant_id: int, stock: int) -> int:
        """Set the stock of an existing variant.

        Returns:
            Number of rows updated (0 when the variant is not stored).
        """
        result = await self.session.execute(
            update(Variant).where(Variant.id == variant_id).values(stock=stock)
        )
        return result.rowcount

    # ========================================================================
    # Safe Stock
    # ========================================================================

    async def get_safe_stock_by_skus(self, skus: Iterable[str]) -> dict[str, SafeStock]:
        """Safe stock rows keyed by SKU.

        Args:
            skus: Variant SKUs.

        Returns:
            Mapping of SKU to its safe stock row.
        """
        wanted = {sku for sku in skus if sku}
        if not wanted:
            return {}
        result = await self.session.execute(select(SafeStock).where(SafeStock.sku.in_(wanted)))
        return {row.sku: row for row in result.scalars()}

    async def get_safe_stock_by_product(self, product_id: int) -> Sequence[SafeStock]:
        result = await self.session.execute(
            select(SafeStock).where(SafeStock.product_id == product_id)
        )
        return result.scalars().all()
