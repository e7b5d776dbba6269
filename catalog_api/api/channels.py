"""Channel API endpoints.

Exposes the per-deployment channel mapping used to validate channel ids.
"""

from fastapi import APIRouter, status

from catalog_api.api.dependencies import CountryDep
from catalog_api.api.schemas import ChannelListResponse, ChannelSchema

router = APIRouter(prefix="/channels", tags=["Channels"])


@router.get(
    "",
    response_model=ChannelListResponse,
    status_code=status.HTTP_200_OK,
    summary="List channels",
    description="Get the configured sales channels of this deployment.",
)
async def list_channels(country: CountryDep) -> ChannelListResponse:
    """List configured channels.

    Returns:
        Channel names, remote ids and root categories.
    """
    channels = [
        ChannelSchema(id=config.id, name=name, parent_category=config.parent_category)
        for name, config in country.channels.items()
    ]
    return ChannelListResponse(channels=channels, total=len(channels))
