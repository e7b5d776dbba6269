"""Brand API endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Path, status

from catalog_api.api.dependencies import CatalogServiceDep
from catalog_api.api.schemas import BrandDetailResponse, ErrorResponse

router = APIRouter(prefix="/brands", tags=["Brands"])


@router.get("", status_code=status.HTTP_200_OK, summary="List brands")
async def list_brands(service: CatalogServiceDep) -> list[dict[str, Any]]:
    """List every mirrored brand."""
    return await service.list_brands()


@router.get(
    "/{brand_id}",
    response_model=BrandDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Get brand",
    responses={404: {"model": ErrorResponse, "description": "Brand not found"}},
)
async def get_brand(
    service: CatalogServiceDep,
    brand_id: Annotated[int, Path(gt=0)],
) -> BrandDetailResponse:
    """Get one brand with the number of products it has."""
    return BrandDetailResponse(**await service.get_brand(brand_id))
