"""Inventory API endpoints.

Forwards stock updates to the inventory microservice.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Path, status

from catalog_api.api.dependencies import InventoryClientDep
from catalog_api.api.schemas import InventoryUpdateRequest

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.patch(
    "/{product_id}",
    status_code=status.HTTP_200_OK,
    summary="Update product inventory",
)
async def update_inventory(
    body: InventoryUpdateRequest,
    client: InventoryClientDep,
    product_id: Annotated[int, Path(gt=0)],
) -> dict[str, Any]:
    """Set a product's on-hand quantity at the deployment's stock location.

    Raises:
        RemoteClientError: If the inventory service rejects the update.
    """
    return await client.update_inventory(product_id, body.quantity)
