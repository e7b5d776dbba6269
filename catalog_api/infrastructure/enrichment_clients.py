"""Clients for the per-country price and inventory microservices."""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from catalog_api.infrastructure.config import CountryConfig, settings
from catalog_api.infrastructure.remote_http import RemoteServiceClient

logger = structlog.get_logger()


@dataclass
class PriceQuote:
    """List price and effective price of a variant."""

    price: float
    calculated_price: float

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "PriceQuote":
        """Create from API response data."""
        return cls(
            price=data.get("price") or 0,
            calculated_price=data.get("calculatedPrice") or data.get("calculated_price") or 0,
        )


@dataclass
class InventoryLevel:
    """Inventory figures of a product or variant at one location."""

    available_to_sell: int | None
    safety_stock: int
    warning_level: int

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "InventoryLevel":
        """Create from API response data."""
        settings_block = data.get("settings") or {}
        available = data.get("availableToSell", data.get("available_to_sell"))
        return cls(
            available_to_sell=available,
            safety_stock=data.get("safetyStock")
            or data.get("safety_stock")
            or settings_block.get("safety_stock")
            or 0,
            warning_level=data.get("warningLevel")
            or data.get("warning_level")
            or settings_block.get("warning_level")
            or 0,
        )


class PriceClient(RemoteServiceClient):
    """Price lookup against the country's price list."""

    service_name = "prices"

    def __init__(
        self,
        base_url: str,
        list_price_id: int | None,
        timeout: float = 15.0,
        request_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            request_id=request_id,
            transport=transport,
        )
        self.list_price_id = list_price_id

    async def get_price(self, variant_id: int) -> PriceQuote:
        """Fetch a variant's prices.

        Args:
            variant_id: Remote variant identifier.

        Returns:
            The variant's price quote.

        Raises:
            RemoteUnavailable: On transport error or after the timeout.
        """
        body = await self._request("GET", f"/price/{variant_id}/{self.list_price_id}")
        return PriceQuote.from_api_response(body.get("data", body) if isinstance(body, dict) else {})


class InventoryClient(RemoteServiceClient):
    """Inventory lookup and update at the country's stock location."""

    service_name = "inventory"

    def __init__(
        self,
        base_url: str,
        location_id: int | None,
        timeout: float = 15.0,
        request_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            request_id=request_id,
            transport=transport,
        )
        self.location_id = location_id

    async def get_inventory(self, item_id: int) -> InventoryLevel:
        """Fetch inventory figures for a product or variant id.

        Args:
            item_id: Remote product or variant identifier.

        Returns:
            Inventory figures at the configured location.
        """
        body = await self._request("GET", f"/inventory/{item_id}/{self.location_id}")
        return InventoryLevel.from_api_response(body.get("data", body) if isinstance(body, dict) else {})

    async def update_inventory(self, product_id: int, quantity: int) -> dict[str, Any]:
        """Set the on-hand quantity of a product at the configured location.

        Args:
            product_id: Remote product identifier.
            quantity: New quantity.

        Returns:
            The inventory service's answer.
        """
        logger.info(
            "Updating inventory",
            product_id=product_id,
            location_id=self.location_id,
            quantity=quantity,
        )
        body = await self._request(
            "PATCH", f"/inventory/{product_id}/{self.location_id}/{quantity}"
        )
        return body if isinstance(body, dict) else {"data": body}


def create_price_client(
    country: CountryConfig, request_id: str | None = None
) -> PriceClient:
    """Create a price client from settings."""
    return PriceClient(
        base_url=settings.price_service_url,
        list_price_id=country.list_price_id,
        timeout=settings.enrichment_timeout,
        request_id=request_id,
    )


def create_inventory_client(
    country: CountryConfig, request_id: str | None = None
) -> InventoryClient:
    """Create an inventory client from settings."""
    return InventoryClient(
        base_url=settings.inventory_service_url,
        location_id=country.inventory_location_id,
        timeout=settings.enrichment_timeout,
        request_id=request_id,
    )


# ============================================================================
# Packs
# ============================================================================


@dataclass
class PackItem:
    """Stock of a pack variant reported by a channel's storefront API."""

    variant_id: int
    stock: int

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "PackItem | None":
        """Create from API response data.

        Returns:
            The pack item, or None when it carries no usable variant id.
        """
        variant_id = data.get("variant_id")
        if isinstance(variant_id, bool) or not isinstance(variant_id, int):
            return None
        try:
            stock = int(data.get("stock") or 0)
        except (TypeError, ValueError):
            stock = 0
        return cls(variant_id=variant_id, stock=stock)


class PacksClient(RemoteServiceClient):
    """Pack stock lookup against a channel's storefront API.

    Each channel serves its packs from its own ``api_url``, so requests use
    absolute URLs rather than a shared base URL.
    """

    service_name = "packs"

    def __init__(
        self,
        api_key: str = "",
        timeout: float = 15.0,
        request_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url="",
            timeout=timeout,
            headers={"x-api-key": api_key} if api_key else None,
            request_id=request_id,
            transport=transport,
        )

    async def get_packs(self, api_url: str) -> list[PackItem]:
        """Fetch the pack items of one channel.

        Args:
            api_url: The channel's storefront API base URL.

        Returns:
            Pack items with a usable variant id.
        """
        body = await self._request("GET", f"{api_url.rstrip('/')}/api/packs")
        rows = body.get("data", []) if isinstance(body, dict) else body
        items = [PackItem.from_api_response(row) for row in rows if isinstance(row, dict)]
        return [item for item in items if item is not None]


def create_packs_client(request_id: str | None = None) -> PacksClient:
    """Create a packs client from settings."""
    return PacksClient(
        api_key=settings.packs_api_key,
        timeout=settings.packs_timeout,
        request_id=request_id,
    )
