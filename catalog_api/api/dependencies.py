"""Request-scoped dependencies for the API routers."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.application.sync_service import SyncService
from catalog_api.catalog.service import CatalogService
from catalog_api.domain.exceptions import ValidationError
from catalog_api.infrastructure.bigcommerce_client import create_bigcommerce_client
from catalog_api.infrastructure.config import CountryConfig, get_country_config, settings
from catalog_api.infrastructure.database import (
    async_session_factory,
    get_read_committed_session,
    get_session,
)
from catalog_api.infrastructure.enrichment_clients import (
    InventoryClient,
    create_inventory_client,
    create_packs_client,
    create_price_client,
)

CountryDep = Annotated[CountryConfig, Depends(get_country_config)]


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def validate_channel_id(channel_id: int | None, country: CountryConfig) -> None:
    """Reject channel ids outside the configured channel set.

    Raises:
        ValidationError: If the channel is not configured.
    """
    if channel_id is not None and channel_id not in country.channel_ids:
        raise ValidationError(
            f"Unknown channel {channel_id}",
            details={"channel_id": channel_id, "allowed": sorted(country.channel_ids)},
        )


def resolve_channel_identifier(identifier: str, country: CountryConfig) -> int:
    """Resolve a channel id or channel name to a configured channel id.

    Raises:
        ValidationError: If nothing configured matches the identifier.
    """
    match = country.resolve_channel(identifier)
    if match is None:
        raise ValidationError(
            f"Unknown channel {identifier}",
            details={"channel": identifier, "allowed": sorted(country.channels)},
        )
    return match[1].id


def _build_catalog_service(
    request: Request, session: AsyncSession, country: CountryConfig
) -> CatalogService:
    request_id = _request_id(request)
    return CatalogService(
        session,
        country,
        orphan_policy=settings.orphan_variant_policy,
        price_client=create_price_client(country, request_id),
        inventory_client=create_inventory_client(country, request_id),
        enrichment_concurrency=settings.enrichment_concurrency,
    )


async def _close_catalog_service(service: CatalogService) -> None:
    await service.price_client.close()
    await service.inventory_client.close()


async def get_catalog_service(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_session)],
    country: CountryDep,
) -> AsyncGenerator[CatalogService, None]:
    """Catalog read service bound to a regular session."""
    service = _build_catalog_service(request, session, country)
    try:
        yield service
    finally:
        await _close_catalog_service(service)


async def get_read_committed_catalog_service(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_read_committed_session)],
    country: CountryDep,
) -> AsyncGenerator[CatalogService, None]:
    """Catalog read service bound to a READ COMMITTED transaction."""
    service = _build_catalog_service(request, session, country)
    try:
        yield service
    finally:
        await _close_catalog_service(service)


async def get_sync_service(
    request: Request, country: CountryDep
) -> AsyncGenerator[SyncService, None]:
    """Sync service with its own BigCommerce, price and packs clients."""
    request_id = _request_id(request)
    catalog = create_bigcommerce_client(request_id)
    price_client = create_price_client(country, request_id) if country.uses_price_service else None
    packs_client = create_packs_client(request_id)
    try:
        yield SyncService(
            async_session_factory,
            catalog,
            country,
            price_client=price_client,
            packs_client=packs_client,
        )
    finally:
        await catalog.close()
        await packs_client.close()
        if price_client is not None:
            await price_client.close()


async def get_inventory_client(
    request: Request, country: CountryDep
) -> AsyncGenerator[InventoryClient, None]:
    """Inventory service client for the current request."""
    client = create_inventory_client(country, _request_id(request))
    try:
        yield client
    finally:
        await client.close()


CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]
ReadCommittedCatalogServiceDep = Annotated[
    CatalogService, Depends(get_read_committed_catalog_service)
]
SyncServiceDep = Annotated[SyncService, Depends(get_sync_service)]
InventoryClientDep = Annotated[InventoryClient, Depends(get_inventory_client)]
