"""Pydantic schemas for API request/response validation."""

from typing import Annotated, Any

from pydantic import BaseModel, Field, PositiveInt

# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Any = Field(default_factory=dict, description="Additional context")
    request_id: str | None = Field(default=None, description="Request correlation ID")


class PaginationSchema(BaseModel):
    """Pagination metadata of a page of results."""

    total: int = Field(..., description="Total number of items")
    count: int = Field(..., description="Items on this page")
    per_page: int = Field(..., description="Requested page size")
    current_page: int = Field(..., description="Current page number")
    total_pages: int = Field(..., description="Total number of pages")


class PageMetaSchema(BaseModel):
    """Metadata block of a paginated response."""

    pagination: PaginationSchema


# ============================================================================
# Variant Schemas
# ============================================================================


class VariantsByIdsRequest(BaseModel):
    """Request body for formatting a set of variants."""

    ids: Annotated[
        list[PositiveInt],
        Field(min_length=1, max_length=100, description="Variant ids (1-100)"),
    ]
    enrich: bool = Field(
        default=False, description="Refresh prices and stock from the enrichment services"
    )


class VariantsPageResponse(BaseModel):
    """Paginated formatted variants."""

    data: list[dict[str, Any]] = Field(..., description="Formatted variants")
    meta: PageMetaSchema


# ============================================================================
# Sync Schemas
# ============================================================================


class SyncResponse(BaseModel):
    """Report of a sync run.

    ``success`` is false when at least one item failed; failed entries in
    ``data`` carry ``error: true`` and a message.
    """

    success: bool = Field(..., description="Whether every item was reconciled")
    message: str = Field(..., description="Outcome summary")
    data: list[dict[str, Any]] = Field(..., description="Per-item outcomes")
    summary: dict[str, int] | None = Field(default=None, description="Stage counters")


# ============================================================================
# Channel / Brand / Inventory Schemas
# ============================================================================


class ChannelSchema(BaseModel):
    """Configured sales channel."""

    id: int = Field(..., description="Remote channel id")
    name: str = Field(..., description="Channel name")
    parent_category: int | None = Field(default=None, description="Root category of the channel")


class ChannelListResponse(BaseModel):
    """List of configured channels."""

    channels: list[ChannelSchema]
    total: int


class BrandDetailResponse(BaseModel):
    """Brand with its product count."""

    id: int
    name: str
    product_count: int


class InventoryUpdateRequest(BaseModel):
    """Request body for setting a product's on-hand quantity."""

    quantity: int = Field(..., ge=0, description="New on-hand quantity")
