"""
Business logic services.

Each service handles one domain area.
"""

from services.import_report import ImportRunReport, EntityTally
from services.import_writer_service import ImportWriter
from services.shopify_import_service import ShopifyImportService, detect_files
from services.tracking_import_service import TrackingImportService, get_tracking_import_service
from services.shipping_export_service import ShippingExportService, get_shipping_export_service

__all__ = [
    "ImportRunReport",
    "EntityTally",
    "ImportWriter",
    "ShopifyImportService",
    "detect_files",
    "TrackingImportService",
    "get_tracking_import_service",
    "ShippingExportService",
    "get_shipping_export_service",
]
