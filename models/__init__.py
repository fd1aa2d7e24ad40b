"""
Models for the Shopify import and the shipping API.

Dataclasses describe in-memory import aggregates; pydantic schemas
describe API payloads.
"""

from models.base import BaseSchema
from models.shopify_import import (
    EntityType,
    ProductStatus,
    OrderStatus,
    PaymentStatus,
    DiscountType,
    VariantImport,
    ImageImport,
    ProductImport,
    CustomerImport,
    LineItemImport,
    OrderImport,
    DiscountImport,
    OutcomeStatus,
    WriteOutcome,
)
from models.shipping import (
    ExportOrdersRequest,
    TrackingUpdate,
    TrackingImportResult,
)

__all__ = [
    "BaseSchema",

    # Import aggregates
    "EntityType",
    "ProductStatus",
    "OrderStatus",
    "PaymentStatus",
    "DiscountType",
    "VariantImport",
    "ImageImport",
    "ProductImport",
    "CustomerImport",
    "LineItemImport",
    "OrderImport",
    "DiscountImport",
    "OutcomeStatus",
    "WriteOutcome",

    # Shipping
    "ExportOrdersRequest",
    "TrackingUpdate",
    "TrackingImportResult",
]
