"""SQLAlchemy models for the mirrored catalog.

Rows are created and updated by the sync service and only read by the
serving endpoints. Primary keys are the remote BigCommerce identifiers.
"""

from typing import Any

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from catalog_api.catalog.types import JSONText
from catalog_api.infrastructure.database import Base


class Brand(Base):
    """Product brand."""

    __tablename__ = "brands"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


class Category(Base):
    """Catalog category; forms a tree through ``parent_id`` (root parent is 0)."""

    __tablename__ = "categories"

    category_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    parent_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    tree_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category_id": self.category_id,
            "title": self.title,
            "url": self.url,
            "parent_id": self.parent_id,
            "order": self.order,
            "image": self.image,
            "is_visible": self.is_visible,
            "tree_id": self.tree_id,
        }


class Channel(Base):
    """Sales channel (storefront)."""

    __tablename__ = "channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


class Product(Base):
    """Product as assigned to one or more sales channels.

    Attributes:
        id: Remote product identifier.
        images: Remote image records (JSON array).
        categories: Remote category ids (JSON array).
        meta_keywords: Keyword strings (JSON array).
        sizes: Store -> size slot flags (JSON object).
        reviews: Review summary (JSON object).
        percent: Discount percentage label, e.g. "20%".
        url: Storefront path, unique across products.
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    page_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    brand_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    image: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    images: Mapped[list] = mapped_column(JSONText(), nullable=True)
    hover: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    categories: Mapped[list] = mapped_column(JSONText(), nullable=True)
    normal_price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    discount_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    cash_price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    percent: Mapped[str] = mapped_column(String(10), nullable=False, default="0%")
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warning_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    armed_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    height: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    width: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    depth: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sameday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    free_shipping: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    despacho24horas: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pickup_in_store: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    turbo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_keywords: Mapped[list] = mapped_column(JSONText(), nullable=True)
    sizes: Mapped[Any] = mapped_column(JSONText(array=False), nullable=True)
    related_products: Mapped[list] = mapped_column(JSONText(), nullable=True)
    url: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="product")
    reserve: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reviews: Mapped[Any] = mapped_column(JSONText(array=False), nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, title={self.title[:30]}...)>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            column.key: getattr(self, column.key)
            for column in self.__table__.columns
        }


class Variant(Base):
    """Purchasable variant of a product.

    ``images``, ``categories``, ``options`` and ``related_products`` are JSON
    arrays stored as text; reads always yield lists.
    """

    __tablename__ = "variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    normal_price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    discount_price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    cash_price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    discount_rate: Mapped[str] = mapped_column(String(10), nullable=False, default="0%")
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warning_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    images: Mapped[list] = mapped_column(JSONText(), nullable=True)
    categories: Mapped[list] = mapped_column(JSONText(), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    armed_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    armed_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    height: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    depth: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    width: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="variant")
    options: Mapped[list] = mapped_column(JSONText(), nullable=True)
    related_products: Mapped[list] = mapped_column(JSONText(), nullable=True)
    option_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    keywords: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Variant(id={self.id}, sku={self.sku}, product_id={self.product_id})>"


class ProductOption(Base):
    """Option (e.g. size, color) defined on a product."""

    __tablename__ = "options"
    __table_args__ = (UniqueConstraint("product_id", "option_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    option_id: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    options: Mapped[list] = mapped_column(JSONText(), nullable=True)


class ChannelProduct(Base):
    """Product assigned to a sales channel."""

    __tablename__ = "channel_product"
    __table_args__ = (UniqueConstraint("channel_id", "product_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)


class CategoryProduct(Base):
    """Category assignment of a product."""

    __tablename__ = "category_products"
    __table_args__ = (UniqueConstraint("product_id", "category_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)


class FiltersProduct(Base):
    """Filter categorization of a product (advanced storefront filters)."""

    __tablename__ = "filters_products"
    __table_args__ = (UniqueConstraint("product_id", "category_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)


class SafeStock(Base):
    """Safety stock maintained by the inventory system; read-only here."""

    __tablename__ = "catalog_safe_stocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    product_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    variant_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    safety_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warning_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_to_sell: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bin_picking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
