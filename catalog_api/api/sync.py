"""Sync API endpoints.

On-demand triggers reconciling BigCommerce data into local storage. All
three answer 200 with the full report; ``success`` is false when any item
failed. Schema mismatches and unrecoverable remote failures are 500s.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Path, status

from catalog_api.api.dependencies import CountryDep, SyncServiceDep, resolve_channel_identifier
from catalog_api.api.schemas import ErrorResponse, SyncResponse

logger = structlog.get_logger()

SYNC_ERRORS = {
    500: {"model": ErrorResponse, "description": "Schema mismatch or remote failure"},
}

router = APIRouter(tags=["Sync"])


@router.get(
    "/sincronizar-marcas",
    response_model=SyncResponse,
    status_code=status.HTTP_200_OK,
    summary="Sync brands",
    responses=SYNC_ERRORS,
)
async def sync_brands(service: SyncServiceDep) -> SyncResponse:
    """Upsert every BigCommerce brand."""
    result = await service.sync_brands()
    return SyncResponse(**result.to_dict())


@router.get(
    "/sincronizar-categorias",
    response_model=SyncResponse,
    status_code=status.HTTP_200_OK,
    summary="Sync categories",
    responses=SYNC_ERRORS,
)
async def sync_categories(service: SyncServiceDep) -> SyncResponse:
    """Upsert every BigCommerce category."""
    result = await service.sync_categories()
    return SyncResponse(**result.to_dict())


@router.get(
    "/sincronizar-productos/{channel}",
    response_model=SyncResponse,
    status_code=status.HTTP_200_OK,
    summary="Sync channel products",
    description="Accepts a remote channel id (`1443267`) or a channel name (`AF`).",
    responses=SYNC_ERRORS,
)
async def sync_products(
    service: SyncServiceDep,
    country: CountryDep,
    channel: Annotated[str, Path(min_length=1, max_length=20)],
) -> SyncResponse:
    """Reconcile every product assigned to a channel.

    Args:
        service: Sync service.
        country: Country configuration.
        channel: Configured remote channel id or channel name.

    Returns:
        Per-product report with a stage summary.
    """
    channel_id = resolve_channel_identifier(channel, country)
    result = await service.sync_products(channel_id)
    if not result.success:
        logger.warning(
            "Product sync finished with failures",
            channel_id=channel_id,
            failed=len(result.failures),
        )
    return SyncResponse(**result.to_dict())
