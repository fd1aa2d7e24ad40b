"""
Order shipping API routes.

Pirate Ship label export and tracking number import.
"""

from datetime import date
from fastapi import APIRouter, UploadFile, File
from fastapi.responses import JSONResponse, Response
from typing import Optional
import structlog

from models.shipping import ExportOrdersRequest, TrackingImportResult
from services.shipping_export_service import get_shipping_export_service
from services.tracking_import_service import get_tracking_import_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.post("/export-csv")
async def export_csv(body: Optional[ExportOrdersRequest] = None):
    """
    Export orders as a Pirate Ship CSV.

    With no order_ids, exports every pending, processing or paid order.

    Returns:
        text/csv attachment named pirateship-orders-YYYY-MM-DD.csv
    """
    try:
        order_ids = body.order_ids if body else None
        content = get_shipping_export_service().export_orders(order_ids)
        filename = f"pirateship-orders-{date.today().isoformat()}.csv"
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )
    except Exception as e:
        return handle_error(e)


@router.post("/import-tracking", response_model=TrackingImportResult)
async def import_tracking(file: UploadFile = File(...)):
    """
    Import tracking numbers from a shipping-label CSV.

    Matched orders are marked shipped; unmatched rows come back in errors.
    """
    try:
        contents = await file.read()
        result = get_tracking_import_service().import_tracking(contents)
        logger.info(
            "tracking_upload_complete",
            filename=file.filename,
            updated=result.updated,
            errors=len(result.errors)
        )
        return result
    except Exception as e:
        return handle_error(e)
