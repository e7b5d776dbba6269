"""BigCommerce catalog API client.

Typed wrapper over the store's v3 catalog endpoints: brands, category
trees, channel assignments, products and product options.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from catalog_api.infrastructure.config import settings
from catalog_api.infrastructure.remote_http import RemoteServiceClient

logger = structlog.get_logger()

CATALOG_PAGE_SIZE = 250


# ============================================================================
# Response DTOs
# ============================================================================


@dataclass
class Pagination:
    """Pagination block from ``meta.pagination``."""

    total: int = 0
    count: int = 0
    per_page: int = 0
    current_page: int = 1
    total_pages: int = 1

    @classmethod
    def from_api_response(cls, body: dict[str, Any]) -> "Pagination":
        """Create from a paginated API response body."""
        data = (body.get("meta") or {}).get("pagination") or {}
        return cls(
            total=data.get("total", 0),
            count=data.get("count", 0),
            per_page=data.get("per_page", 0),
            current_page=data.get("current_page", 1),
            total_pages=data.get("total_pages", 1) or 1,
        )


@dataclass
class RemoteBrand:
    """Brand from BigCommerce."""

    id: int
    name: str

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteBrand":
        """Create from API response data."""
        return cls(id=data["id"], name=data.get("name"))


@dataclass
class RemoteCategory:
    """Category node from a BigCommerce category tree."""

    category_id: int
    name: str
    url_path: str
    parent_id: int
    sort_order: int
    image_url: str | None
    is_visible: bool
    tree_id: int | None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteCategory":
        """Create from API response data."""
        url = data.get("url") or {}
        return cls(
            category_id=data.get("category_id") or data["id"],
            name=data.get("name"),
            url_path=url.get("path", "") if isinstance(url, dict) else str(url),
            parent_id=data.get("parent_id", 0),
            sort_order=data.get("sort_order", 0),
            image_url=data.get("image_url") or None,
            is_visible=data.get("is_visible", True),
            tree_id=data.get("tree_id"),
        )


@dataclass
class RemoteImage:
    """Product image."""

    url_standard: str
    url_zoom: str
    description: str
    is_thumbnail: bool
    sort_order: int

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteImage":
        """Create from API response data."""
        return cls(
            url_standard=data.get("url_standard", ""),
            url_zoom=data.get("url_zoom", ""),
            description=data.get("description") or "",
            is_thumbnail=bool(data.get("is_thumbnail", False)),
            sort_order=data.get("sort_order", 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url_standard": self.url_standard,
            "url_zoom": self.url_zoom,
            "description": self.description,
            "is_thumbnail": self.is_thumbnail,
            "sort_order": self.sort_order,
        }


@dataclass
class RemoteVariant:
    """Product variant."""

    id: int
    product_id: int
    sku: str
    price: float | None
    sale_price: float | None
    calculated_price: float | None
    inventory_level: int
    weight: float
    width: float
    depth: float
    height: float
    image_url: str
    option_values: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteVariant":
        """Create from API response data."""
        return cls(
            id=data["id"],
            product_id=data.get("product_id"),
            sku=data.get("sku", ""),
            price=data.get("price"),
            sale_price=data.get("sale_price"),
            calculated_price=data.get("calculated_price"),
            inventory_level=data.get("inventory_level", 0) or 0,
            weight=data.get("calculated_weight") or data.get("weight") or 0,
            width=data.get("width") or 0,
            depth=data.get("depth") or 0,
            height=data.get("height") or 0,
            image_url=data.get("image_url") or "",
            option_values=data.get("option_values") or [],
        )


@dataclass
class RemoteProduct:
    """Product with its images and variants included."""

    id: int
    name: str
    description: str
    brand_id: int | None
    price: float
    sale_price: float
    inventory_level: int
    weight: float
    width: float
    depth: float
    height: float
    sort_order: int
    is_featured: bool
    is_visible: bool
    categories: list[int]
    meta_keywords: list[str]
    meta_description: str
    custom_url: str | None
    related_products: list[int]
    images: list[RemoteImage] = field(default_factory=list)
    variants: list[RemoteVariant] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteProduct":
        """Create from API response data."""
        custom_url = data.get("custom_url") or {}
        return cls(
            id=data["id"],
            name=data.get("name"),
            description=data.get("description") or "",
            brand_id=data.get("brand_id") or None,
            price=data.get("price") or 0,
            sale_price=data.get("sale_price") or 0,
            inventory_level=data.get("inventory_level", 0) or 0,
            weight=data.get("weight") or 0,
            width=data.get("width") or 0,
            depth=data.get("depth") or 0,
            height=data.get("height") or 0,
            sort_order=data.get("sort_order", 0) or 0,
            is_featured=bool(data.get("is_featured", False)),
            is_visible=bool(data.get("is_visible", True)),
            categories=list(data.get("categories") or []),
            meta_keywords=list(data.get("meta_keywords") or []),
            meta_description=data.get("meta_description") or "",
            custom_url=custom_url.get("url"),
            related_products=[
                pid for pid in (data.get("related_products") or []) if pid and pid > 0
            ],
            images=[RemoteImage.from_api_response(i) for i in data.get("images") or []],
            variants=[RemoteVariant.from_api_response(v) for v in data.get("variants") or []],
        )


@dataclass
class RemoteOption:
    """Product option definition (e.g. size) with its values."""

    id: int
    product_id: int
    display_name: str
    option_values: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteOption":
        """Create from API response data."""
        return cls(
            id=data["id"],
            product_id=data.get("product_id"),
            display_name=data.get("display_name") or data.get("name") or "",
            option_values=data.get("option_values") or [],
        )


@dataclass
class ChannelProductPage:
    """One page of channel assignments."""

    product_ids: list[int]
    pagination: Pagination


# ============================================================================
# BigCommerce Client
# ============================================================================


class BigCommerceClient(RemoteServiceClient):
    """HTTP client for the BigCommerce catalog API of one store.

    Every call raises ``RemoteUnavailable``, ``RemoteRateLimited``,
    ``RemoteNotFound`` or ``RemoteError`` on failure and never retries.
    """

    service_name = "bigcommerce"

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 15.0,
        request_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize BigCommerce client.

        Args:
            base_url: Store-scoped API base URL.
            access_token: Store API token.
            timeout: Request timeout in seconds.
            request_id: Optional request ID for correlation.
            transport: Optional transport override (used by tests).
        """
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            headers={
                "X-Auth-Token": access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            request_id=request_id,
            transport=transport,
        )

    async def _list_all(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Collect ``data`` from every page of a paginated endpoint."""
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            body = await self._request(
                "GET",
                path,
                params={**(params or {}), "limit": CATALOG_PAGE_SIZE, "page": page},
            )
            items.extend(body.get("data") or [])
            pagination = Pagination.from_api_response(body)
            if page >= pagination.total_pages:
                return items
            page += 1

    async def list_brands(self) -> list[RemoteBrand]:
        """List every brand in the store.

        Returns:
            All remote brands.
        """
        data = await self._list_all("/v3/catalog/brands")
        return [RemoteBrand.from_api_response(item) for item in data]

    async def list_categories(self) -> list[RemoteCategory]:
        """List every category across the store's category trees.

        Returns:
            All remote categories.
        """
        data = await self._list_all("/v3/catalog/trees/categories")
        return [RemoteCategory.from_api_response(item) for item in data]

    async def list_channel_product_page(
        self,
        channel_id: int,
        page: int = 1,
        page_size: int = 200,
    ) -> ChannelProductPage:
        """Fetch one page of a channel's product assignments.

        Args:
            channel_id: Remote channel identifier.
            page: Page number (1-based).
            page_size: Assignments per page.

        Returns:
            Product ids on the page and the pagination metadata.
        """
        body = await self._request(
            "GET",
            "/v3/catalog/products/channel-assignments",
            params={"channel_id:in": channel_id, "limit": page_size, "page": page},
        )
        ids = [
            item.get("product_id") or item.get("id")
            for item in body.get("data") or []
        ]
        return ChannelProductPage(
            product_ids=[pid for pid in ids if pid],
            pagination=Pagination.from_api_response(body),
        )

    async def get_product(self, product_id: int) -> RemoteProduct:
        """Fetch one product with images and variants.

        Args:
            product_id: Remote product identifier.

        Returns:
            The remote product.
        """
        body = await self._request(
            "GET",
            f"/v3/catalog/products/{product_id}",
            params={"include": "images,variants"},
        )
        return RemoteProduct.from_api_response(body.get("data") or {})

    async def get_products(self, product_ids: list[int]) -> list[RemoteProduct]:
        """Fetch a batch of products with images and variants.

        Args:
            product_ids: Remote product identifiers.

        Returns:
            The products BigCommerce returned (missing ids are skipped).
        """
        if not product_ids:
            return []
        body = await self._request(
            "GET",
            "/v3/catalog/products",
            params={
                "id:in": ",".join(str(pid) for pid in product_ids),
                "include": "images,variants",
                "limit": len(product_ids),
            },
        )
        return [RemoteProduct.from_api_response(item) for item in body.get("data") or []]

    async def get_product_options(self, product_id: int) -> list[RemoteOption]:
        """Fetch a product's option definitions.

        Args:
            product_id: Remote product identifier.

        Returns:
            The product's options.
        """
        body = await self._request("GET", f"/v3/catalog/products/{product_id}/options")
        return [RemoteOption.from_api_response(item) for item in body.get("data") or []]


def create_bigcommerce_client(request_id: str | None = None) -> BigCommerceClient:
    """Create a BigCommerce client from settings.

    Args:
        request_id: Optional request ID for correlation.

    Returns:
        Configured client; caller must close it.
    """
    return BigCommerceClient(
        base_url=settings.bigcommerce_base_url,
        access_token=settings.bigcommerce_access_token,
        timeout=settings.bigcommerce_timeout,
        request_id=request_id,
    )
