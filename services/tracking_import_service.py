"""
Tracking number import from shipping-label CSVs.

Pirate Ship (or any label tool) exports one row per label. Each row is
matched to an order by order number, or by order id, and the order is
marked shipped with its tracking details.

Bad rows are reported as "Row N: ..." and never stop the import; row
numbers count the header as row 1, like a spreadsheet does.
"""

from datetime import datetime, timezone
from typing import Optional, Union
from uuid import UUID

import structlog
from supabase import Client

from config import get_supabase_client
from exceptions import DatabaseError, TrackingImportError
from models.shipping import TrackingImportResult, TrackingUpdate
from models.shopify_import import OrderStatus
from parsers.csv_parser import parse_csv, find_column

logger = structlog.get_logger(__name__)

ORDER_NUMBER_ALIASES = ["Order Number", "Order ID", "order_number", "order_id"]
TRACKING_NUMBER_ALIASES = ["Tracking Number", "Tracking", "tracking_number", "tracking"]
TRACKING_URL_ALIASES = ["Tracking URL", "Tracking Link", "tracking_url", "tracking_link"]
CARRIER_ALIASES = ["Carrier", "Shipping Carrier", "carrier"]


class TrackingImportService:
    """
    Applies tracking numbers to stored orders.
    """

    def __init__(self, client: Optional[Client] = None):
        self.db = client or get_supabase_client()
        self.table = "orders"

    def import_tracking(self, content: Union[str, bytes]) -> TrackingImportResult:
        """
        Import a tracking CSV.

        Args:
            content: CSV text or bytes

        Returns:
            TrackingImportResult with updated orders and per-row errors

        Raises:
            TrackingImportError: If the file is empty or lacks the
                order number / tracking number columns
        """
        rows = parse_csv(content)
        if not rows:
            raise TrackingImportError("CSV file is empty or invalid")

        headers = list(rows[0].keys())
        order_col = find_column(headers, ORDER_NUMBER_ALIASES)
        tracking_col = find_column(headers, TRACKING_NUMBER_ALIASES)
        url_col = find_column(headers, TRACKING_URL_ALIASES)
        carrier_col = find_column(headers, CARRIER_ALIASES)

        if order_col is None or tracking_col is None:
            raise TrackingImportError(
                'CSV must contain "Order Number" and "Tracking Number" columns',
                details={"columns": headers}
            )

        result = TrackingImportResult()

        for row_number, row in enumerate(rows, start=2):
            order_ref = row.get(order_col, "")
            tracking_number = row.get(tracking_col, "")
            tracking_url = row.get(url_col, "") if url_col else ""
            carrier = row.get(carrier_col, "") if carrier_col else ""

            if not order_ref or not tracking_number:
                result.errors.append(f"Row {row_number}: Missing order number or tracking number")
                continue

            try:
                order = self.find_order(order_ref)
            except DatabaseError:
                result.errors.append(f"Row {row_number}: Processing error")
                continue

            if order is None:
                result.errors.append(f'Row {row_number}: Order "{order_ref}" not found')
                continue

            update = {
                "tracking_number": tracking_number,
                "status": OrderStatus.SHIPPED.value,
                "shipped_at": datetime.now(timezone.utc).isoformat(),
            }
            if tracking_url:
                update["tracking_url"] = tracking_url
            if carrier:
                update["carrier"] = carrier

            try:
                self.db.table(self.table).update(update).eq("id", order["id"]).execute()
            except Exception as e:
                logger.error(
                    "tracking_update_failed",
                    row=row_number,
                    order=order_ref,
                    error=str(e)
                )
                result.errors.append(f'Row {row_number}: Failed to update order "{order_ref}"')
                continue

            result.details.append(TrackingUpdate(
                order_number=order.get("order_number") or order["id"],
                tracking_number=tracking_number,
                carrier=carrier or None,
                tracking_url=tracking_url or None,
            ))

        result.updated = len(result.details)

        logger.info(
            "tracking_import_complete",
            rows=len(rows),
            updated=result.updated,
            errors=len(result.errors)
        )
        return result

    def find_order(self, reference: str) -> Optional[dict]:
        """
        Look up an order by order number ("1001" or "#1001") or by UUID.

        Returns:
            {"id", "order_number"} or None
        """
        order_number = reference.replace("#", "").strip()
        try:
            result = (
                self.db.table(self.table)
                .select("id, order_number")
                .eq("order_number", order_number)
                .limit(1)
                .execute()
            )
            if result.data:
                return result.data[0]

            if not _is_uuid(reference):
                return None

            result = (
                self.db.table(self.table)
                .select("id, order_number")
                .eq("id", reference)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("order_lookup_failed", reference=reference, error=str(e))
            raise DatabaseError("select", str(e), {"reference": reference}) from e

        return result.data[0] if result.data else None


def _is_uuid(value: str) -> bool:
    try:
        UUID(value)
        return True
    except ValueError:
        return False


# Singleton instance for convenience
_tracking_import_service: Optional[TrackingImportService] = None

def get_tracking_import_service() -> TrackingImportService:
    """Get or create TrackingImportService instance."""
    global _tracking_import_service
    if _tracking_import_service is None:
        _tracking_import_service = TrackingImportService()
    return _tracking_import_service
