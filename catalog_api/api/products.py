"""Product API endpoints.

Serves mirrored products and their formatted variants.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Path, Query, status

from catalog_api.api.dependencies import CatalogServiceDep
from catalog_api.api.schemas import ErrorResponse

router = APIRouter(prefix="/products", tags=["Products"])


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    summary="List products",
)
async def list_products(service: CatalogServiceDep) -> list[dict[str, Any]]:
    """List every mirrored product."""
    return await service.list_products()


@router.get(
    "/{product_id}",
    status_code=status.HTTP_200_OK,
    summary="Get product",
    responses={404: {"model": ErrorResponse, "description": "Product not found"}},
)
async def get_product(
    service: CatalogServiceDep,
    product_id: Annotated[int, Path(gt=0)],
) -> dict[str, Any]:
    """Get one product by id.

    Args:
        service: Catalog service.
        product_id: Remote product id.

    Returns:
        The product.

    Raises:
        NotFoundError: If the product is not mirrored.
    """
    return await service.get_product(product_id)


@router.get(
    "/{product_id}/variants",
    status_code=status.HTTP_200_OK,
    summary="List a product's formatted variants",
    responses={404: {"model": ErrorResponse, "description": "Product not found"}},
)
async def list_product_variants(
    service: CatalogServiceDep,
    product_id: Annotated[int, Path(gt=0)],
    enrich: Annotated[bool, Query()] = False,
) -> list[dict[str, Any]]:
    """Formatted variants of one product."""
    return await service.list_product_variants(product_id, enrich=enrich)
