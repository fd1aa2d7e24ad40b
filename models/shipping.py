"""
Shipping models: Pirate Ship export request and tracking import results.
"""

from pydantic import Field
from typing import Optional

from models.base import BaseSchema


class ExportOrdersRequest(BaseSchema):
    """Body of POST /api/orders/export-csv."""
    order_ids: Optional[list[str]] = Field(
        None,
        description="Order UUIDs to export; omit to export every open order"
    )


class TrackingUpdate(BaseSchema):
    """One order updated from the tracking CSV."""
    order_number: str
    tracking_number: str
    carrier: Optional[str] = None
    tracking_url: Optional[str] = None


class TrackingImportResult(BaseSchema):
    """Result of a tracking CSV import."""
    success: bool = True
    updated: int = Field(0, ge=0, description="Orders marked shipped")
    errors: list[str] = Field(default_factory=list, description="'Row N: ...' messages")
    details: list[TrackingUpdate] = Field(default_factory=list)
