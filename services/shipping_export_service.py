"""
Pirate Ship CSV export.

Builds a label-import file from open orders (or a chosen set of
orders). Columns follow Pirate Ship's import template; fields with
commas, quotes or newlines are quoted with doubled quotes.
"""

import csv
from io import StringIO
from typing import Optional

import pandas as pd
import structlog
from supabase import Client

from config import get_settings, get_supabase_client, Settings
from exceptions import DatabaseError, NoOrdersToExportError
from models.shopify_import import OrderStatus

logger = structlog.get_logger(__name__)

PIRATE_SHIP_COLUMNS = [
    "Name",
    "Company",
    "Address 1",
    "Address 2",
    "City",
    "State",
    "Zip",
    "Country",
    "Email",
    "Phone",
    "Order Number",
    "Weight (oz)",
    "Notes",
]

EXPORTABLE_STATUSES = [
    OrderStatus.PENDING.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.PAID.value,
]

OUNCES_PER_POUND = 16


class ShippingExportService:
    """
    Exports orders for label purchase.
    """

    def __init__(self, client: Optional[Client] = None, settings: Optional[Settings] = None):
        self.db = client or get_supabase_client()
        self.settings = settings or get_settings()

    def export_orders(self, order_ids: Optional[list[str]] = None) -> str:
        """
        Build the Pirate Ship CSV.

        Args:
            order_ids: Orders to export; None or [] exports every
                pending, processing or paid order

        Returns:
            CSV text, newest order first

        Raises:
            NoOrdersToExportError: If nothing matches
            DatabaseError: If the orders cannot be fetched
        """
        orders = self._fetch_orders(order_ids)
        if not orders:
            raise NoOrdersToExportError(order_ids)

        item_counts = self._item_counts([o["id"] for o in orders])
        default_country = self.settings.default_country

        records = [
            {
                "Name": order.get("customer_name") or "",
                "Company": "",
                "Address 1": order.get("shipping_address_line1") or "",
                "Address 2": order.get("shipping_address_line2") or "",
                "City": order.get("shipping_city") or "",
                "State": order.get("shipping_state") or "",
                "Zip": order.get("shipping_postal_code") or "",
                "Country": order.get("shipping_country") or default_country,
                "Email": order.get("customer_email") or "",
                "Phone": order.get("customer_phone") or "",
                "Order Number": order.get("order_number") or order["id"],
                "Weight (oz)": format_weight(
                    self.calculate_weight_oz(order, item_counts.get(order["id"], 0))
                ),
                "Notes": order.get("notes") or "",
            }
            for order in orders
        ]

        buffer = StringIO()
        pd.DataFrame(records, columns=PIRATE_SHIP_COLUMNS).to_csv(
            buffer,
            index=False,
            quoting=csv.QUOTE_MINIMAL,
            lineterminator="\n",
        )

        logger.info("orders_exported", count=len(records), selected=bool(order_ids))
        return buffer.getvalue()

    def calculate_weight_oz(self, order: dict, item_count: int) -> float:
        """
        Package weight in ounces.

        Stored weight_oz wins, then weight_lb; otherwise every item is
        assumed to weigh the default item weight (12 oz for a candle).
        """
        if order.get("weight_oz"):
            return float(order["weight_oz"])
        if order.get("weight_lb"):
            return float(order["weight_lb"]) * OUNCES_PER_POUND
        return max(item_count, 1) * self.settings.default_item_weight_oz

    # ===================
    # HELPERS
    # ===================

    def _fetch_orders(self, order_ids: Optional[list[str]]) -> list[dict]:
        try:
            query = (
                self.db.table("orders")
                .select("*")
                .order("created_at", desc=True)
            )
            if order_ids:
                query = query.in_("id", order_ids)
            else:
                query = query.in_("status", EXPORTABLE_STATUSES)
            result = query.execute()
        except Exception as e:
            logger.error("export_orders_fetch_failed", error=str(e))
            raise DatabaseError("select", str(e), {"table": "orders"}) from e
        return result.data or []

    def _item_counts(self, order_ids: list[str]) -> dict[str, int]:
        """Total line item quantity per order id."""
        try:
            result = (
                self.db.table("order_items")
                .select("order_id, quantity")
                .in_("order_id", order_ids)
                .execute()
            )
        except Exception as e:
            logger.error("export_items_fetch_failed", error=str(e))
            raise DatabaseError("select", str(e), {"table": "order_items"}) from e

        counts: dict[str, int] = {}
        for item in result.data or []:
            counts[item["order_id"]] = counts.get(item["order_id"], 0) + int(item.get("quantity") or 0)
        return counts


def format_weight(ounces: float) -> str:
    """16.0 → "16", 5.25 → "5.25"."""
    return f"{round(ounces, 2):g}"


# Singleton instance for convenience
_shipping_export_service: Optional[ShippingExportService] = None

def get_shipping_export_service() -> ShippingExportService:
    """Get or create ShippingExportService instance."""
    global _shipping_export_service
    if _shipping_export_service is None:
        _shipping_export_service = ShippingExportService()
    return _shipping_export_service
