"""Variant API endpoints.

Serves formatted variants, paginated or by id.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Query, status

from catalog_api.api.dependencies import (
    CatalogServiceDep,
    CountryDep,
    ReadCommittedCatalogServiceDep,
    validate_channel_id,
)
from catalog_api.api.schemas import (
    ErrorResponse,
    PageMetaSchema,
    PaginationSchema,
    VariantsByIdsRequest,
    VariantsPageResponse,
)
from catalog_api.catalog.service import PaginationParams

router = APIRouter(prefix="/variants", tags=["Variants"])


@router.get(
    "",
    response_model=VariantsPageResponse,
    status_code=status.HTTP_200_OK,
    summary="List formatted variants",
    responses={400: {"model": ErrorResponse, "description": "Invalid pagination or channel"}},
    description="Paginated formatted variants, optionally limited to one channel. "
    "Reads run in a READ COMMITTED transaction.",
)
async def list_variants(
    service: ReadCommittedCatalogServiceDep,
    country: CountryDep,
    page: Annotated[int, Query(gt=0, description="Page number")] = 1,
    limit: Annotated[int, Query(gt=0, le=1000, description="Items per page")] = 20,
    channel_id: Annotated[int | None, Query(gt=0, description="Channel filter")] = None,
    enrich: Annotated[bool, Query(description="Refresh live prices and stock")] = False,
) -> VariantsPageResponse:
    """List formatted variants.

    Args:
        service: Catalog service on a READ COMMITTED session.
        country: Country configuration.
        page: Page number.
        limit: Items per page.
        channel_id: Optional configured channel id.
        enrich: Refresh prices and stock from the enrichment services.

    Returns:
        Page of formatted variants with pagination metadata.

    Raises:
        ValidationError: If the channel is not configured.
    """
    validate_channel_id(channel_id, country)
    result = await service.paginate_variants(
        PaginationParams(page=page, page_size=limit),
        channel_id=channel_id,
        enrich=enrich,
    )
    return VariantsPageResponse(
        data=result.items,
        meta=PageMetaSchema(
            pagination=PaginationSchema(
                total=result.total,
                count=len(result.items),
                per_page=result.page_size,
                current_page=result.page,
                total_pages=result.total_pages,
            )
        ),
    )


@router.post(
    "/formatted-by-ids",
    status_code=status.HTTP_200_OK,
    summary="Format variants by id",
)
async def format_variants_by_ids(
    body: VariantsByIdsRequest,
    service: CatalogServiceDep,
) -> list[dict[str, Any]]:
    """Formatted visible variants for a set of ids.

    Args:
        body: 1-100 positive variant ids.
        service: Catalog service.

    Returns:
        Formatted variants ordered by id.
    """
    return await service.format_variants_by_ids(body.ids, enrich=body.enrich)
