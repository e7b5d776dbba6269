"""Category API endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Path, status

from catalog_api.api.dependencies import CatalogServiceDep
from catalog_api.api.schemas import ErrorResponse

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", status_code=status.HTTP_200_OK, summary="List categories")
async def list_categories(service: CatalogServiceDep) -> list[dict[str, Any]]:
    """List every mirrored category."""
    return await service.list_categories()


@router.get(
    "/{category_id}",
    status_code=status.HTTP_200_OK,
    summary="Get category",
    responses={404: {"model": ErrorResponse, "description": "Category not found"}},
)
async def get_category(
    service: CatalogServiceDep,
    category_id: Annotated[int, Path(gt=0)],
) -> dict[str, Any]:
    """Get one category by id."""
    return await service.get_category(category_id)
