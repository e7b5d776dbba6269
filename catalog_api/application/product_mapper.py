"""Mapping of remote BigCommerce products onto local catalog rows.

Pure functions: every input (safe stock, prices, category titles) is
fetched by the caller and passed in.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from catalog_api.domain.calculations import (
    available_stock,
    discount_percent,
    transfer_price,
    volumetric_weight,
)
from catalog_api.infrastructure.bigcommerce_client import (
    RemoteImage,
    RemoteOption,
    RemoteProduct,
    RemoteVariant,
)
from catalog_api.infrastructure.config import ChannelConfig, CountryConfig
from catalog_api.infrastructure.enrichment_clients import PriceQuote

META_DESCRIPTION_LENGTH = 160


@dataclass
class StockFigures:
    """Safe stock figures joined from the inventory system."""

    available_to_sell: int | None = None
    safety_stock: int = 0

    @classmethod
    def combine(cls, rows: Sequence[Any]) -> "StockFigures":
        """Sum several safe stock rows; no rows means no external figure."""
        if not rows:
            return cls()
        return cls(
            available_to_sell=sum(row.available_to_sell or 0 for row in rows),
            safety_stock=sum(row.safety_stock or 0 for row in rows),
        )


@dataclass
class Pricing:
    normal_price: float = 0
    discount_price: float = 0
    cash_price: float = 0
    discount_rate: str = "0%"

    @property
    def is_zero(self) -> bool:
        return not self.normal_price and not self.discount_price


# ============================================================================
# Images
# ============================================================================


def thumbnail_url(images: Sequence[RemoteImage]) -> str:
    for image in images:
        if image.is_thumbnail:
            return image.url_standard
    return ""


def hover_url(images: Sequence[RemoteImage]) -> str | None:
    for image in images:
        if "hover" in image.description.lower():
            return image.url_standard
    return None


def variant_image_urls(
    images: Sequence[RemoteImage], sku: str, variant_image: str
) -> list[str]:
    """Images of one variant: its own image first, then product images tagged with its SKU.

    Args:
        images: Product images.
        sku: Variant SKU, matched against image descriptions.
        variant_image: The variant's own image URL, if any.

    Returns:
        Image URLs in display order.
    """
    urls = [variant_image] if variant_image else []
    if not sku:
        return urls
    for image in sorted(images, key=lambda i: i.sort_order):
        if sku in image.description and image.url_zoom:
            urls.append(image.url_zoom)
    return urls


# ============================================================================
# Pricing
# ============================================================================


def _pricing(
    price: float | None,
    sale_price: float | None,
    effective_price: float | None,
    transfer_percent: float,
) -> Pricing:
    effective = sale_price or effective_price or 0
    return Pricing(
        normal_price=price or 0,
        discount_price=sale_price or 0,
        cash_price=transfer_price(price, effective, transfer_percent),
        discount_rate=discount_percent(price, effective),
    )


def price_product(
    product: RemoteProduct,
    country: CountryConfig,
    quote: PriceQuote | None = None,
) -> Pricing:
    """Prices of a product.

    Chile prices come from the catalog itself; other countries use the
    price service quote of the first variant. A missing quote yields zeros.
    """
    if not country.uses_price_service:
        return _pricing(product.price, product.sale_price, None, country.transfer_percent)
    if quote is None or not quote.price or not quote.calculated_price:
        return Pricing()
    return _pricing(
        quote.price, quote.calculated_price, None, country.transfer_percent
    )


def price_variant(
    variant: RemoteVariant,
    product: RemoteProduct,
    country: CountryConfig,
    quote: PriceQuote | None = None,
) -> Pricing:
    """Prices of a variant; same country rules as ``price_product``."""
    if not country.uses_price_service:
        price = variant.price if variant.price is not None else product.price
        return _pricing(
            price, variant.sale_price, variant.calculated_price, country.transfer_percent
        )
    if quote is None or not quote.price or not quote.calculated_price:
        return Pricing()
    return _pricing(
        quote.price, quote.calculated_price, None, country.transfer_percent
    )


# ============================================================================
# Category-derived fields
# ============================================================================


def _in(category_id: int | None, categories: Sequence[int]) -> bool:
    return category_id is not None and category_id in categories


def product_sizes(categories: Sequence[int], channel: ChannelConfig) -> dict[str, dict[str, bool]]:
    return {
        store: {
            "small": _in(slots.small, categories),
            "medium": _in(slots.medium, categories),
            "big": _in(slots.big, categories),
        }
        for store, slots in channel.sizes.items()
    }


def product_reserve(
    categories: Sequence[int],
    channel: ChannelConfig,
    reserve_titles: dict[int, str],
) -> str:
    """Reserve date label of a pre-order product, or "".

    A product is on reserve when it sits in the channel's reserve category;
    the label is the title of the reserve sub-category it also belongs to.
    """
    if not _in(channel.reserve, categories):
        return ""
    for category_id in categories:
        if category_id in reserve_titles:
            return reserve_titles[category_id]
    return ""


# ============================================================================
# Rows
# ============================================================================


def map_product(
    product: RemoteProduct,
    channel: ChannelConfig,
    country: CountryConfig,
    stock: StockFigures,
    quote: PriceQuote | None = None,
    reserve_titles: dict[int, str] | None = None,
) -> dict[str, Any]:
    """Build the ``products`` row of a remote product.

    Args:
        product: Remote product with images and variants.
        channel: Configuration of the channel being synchronized.
        country: Deployment country configuration.
        stock: Safe stock figures of the product.
        quote: Price service quote (non-CL countries).
        reserve_titles: Titles of the reserve sub-categories by id.

    Returns:
        Column values keyed by column name.
    """
    pricing = price_product(product, country, quote)
    categories = product.categories

    if country.uses_price_service:
        quantity = stock.available_to_sell or 0
    else:
        quantity = sum(v.inventory_level for v in product.variants)

    description = product.description or ""
    return {
        "id": product.id,
        "title": product.name,
        "page_title": product.name,
        "description": description,
        "brand_id": product.brand_id,
        "image": thumbnail_url(product.images),
        "images": [image.to_dict() for image in product.images],
        "hover": hover_url(product.images),
        "categories": list(categories),
        "normal_price": pricing.normal_price,
        "discount_price": pricing.discount_price,
        "cash_price": pricing.cash_price,
        "percent": pricing.discount_rate,
        "stock": available_stock(
            product.inventory_level, stock.safety_stock, stock.available_to_sell
        ),
        "warning_stock": stock.safety_stock,
        "quantity": quantity,
        "armed_cost": 0,
        "weight": volumetric_weight(
            product.width, product.depth, product.height, product.weight, country.country_code
        ),
        "height": product.height,
        "width": product.width,
        "depth": product.depth,
        "sort_order": product.sort_order,
        "sameday": _in(channel.sameday, categories),
        "free_shipping": _in(channel.free_shipping, categories),
        "despacho24horas": _in(channel.despacho24horas, categories),
        "featured": product.is_featured,
        "pickup_in_store": _in(channel.pickup_in_store, categories),
        "is_visible": False if pricing.is_zero else product.is_visible,
        "turbo": _in(channel.turbo, categories),
        "meta_description": product.meta_description or description[:META_DESCRIPTION_LENGTH],
        "meta_keywords": list(product.meta_keywords),
        "sizes": product_sizes(categories, channel),
        "related_products": list(product.related_products),
        "url": product.custom_url or "/",
        "type": "variation" if len(product.variants) > 1 else "product",
        "reserve": product_reserve(categories, channel, reserve_titles or {}),
    }


def map_variant(
    variant: RemoteVariant,
    product: RemoteProduct,
    product_row: dict[str, Any],
    country: CountryConfig,
    stock: StockFigures,
    quote: PriceQuote | None = None,
    keywords: str = "",
) -> dict[str, Any]:
    """Build the ``variants`` row of a remote variant.

    Args:
        variant: Remote variant.
        product: Its remote product.
        product_row: The product's mapped row (see ``map_product``).
        country: Deployment country configuration.
        stock: Safe stock figures joined by SKU.
        quote: Price service quote (non-CL countries).
        keywords: Comma-separated search keywords.

    Returns:
        Column values keyed by column name.
    """
    pricing = price_variant(variant, product, country, quote)
    option_values = variant.option_values
    return {
        "id": variant.id,
        "product_id": product.id,
        "title": product.name,
        "sku": variant.sku,
        "normal_price": pricing.normal_price,
        "discount_price": pricing.discount_price,
        "cash_price": pricing.cash_price,
        "discount_rate": pricing.discount_rate,
        "stock": available_stock(
            variant.inventory_level, stock.safety_stock, stock.available_to_sell
        ),
        "warning_stock": stock.safety_stock,
        "image": variant.image_url or product_row["image"],
        "images": variant_image_urls(product.images, variant.sku, variant.image_url),
        "categories": list(product.categories),
        "quantity": variant.inventory_level,
        "armed_cost": 0,
        "armed_quantity": 1,
        "weight": volumetric_weight(
            variant.width, variant.depth, variant.height, variant.weight, country.country_code
        ),
        "height": variant.height,
        "depth": variant.depth,
        "width": variant.width,
        "type": "variant",
        "options": option_values or None,
        "related_products": list(product.related_products) or None,
        "option_label": option_values[0].get("label") if option_values else None,
        "keywords": keywords,
        "is_visible": False if pricing.is_zero else product.is_visible,
    }


def map_option(option: RemoteOption, product_id: int) -> dict[str, Any]:
    """Build the ``options`` row of a product option."""
    return {
        "product_id": product_id,
        "option_id": option.id,
        "label": option.display_name,
        "options": [
            {"id": value.get("id"), "label": value.get("label")}
            for value in option.option_values
        ],
    }
