"""
Idempotent writer for imported aggregates.

Each aggregate is checked against the store by natural key before any
write. New aggregates are written parent first, then one request per
child in row order. Child failures are logged and skipped; the parent
and its other children stay written.

Known gap: a run that dies between parent and children leaves the
parent in place, and the next run skips it, so missing children are
never backfilled.
"""

import re
from typing import Optional

import structlog
from supabase import Client

from config import get_supabase_client
from exceptions import DatabaseError, EntityWriteError
from models.shopify_import import (
    CustomerImport,
    DiscountImport,
    EntityType,
    LineItemImport,
    OrderImport,
    ProductImport,
    WriteOutcome,
)

logger = structlog.get_logger(__name__)

# Children before parents, so no delete trips a foreign key
CLEAR_ORDER = [
    "order_items",
    "orders",
    "product_images",
    "product_variants",
    "products",
    "customers",
    "discount_codes",
]

# PostgREST refuses unfiltered deletes; no row has the nil UUID
_NIL_UUID = "00000000-0000-0000-0000-000000000000"

TITLE_SEPARATOR = " - "

_LIKE_SPECIAL = re.compile(r"([\\%_])")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so a title is matched literally."""
    return _LIKE_SPECIAL.sub(r"\\\1", value)


class ImportWriter:
    """
    Writes aggregates to Supabase.

    Raises on parent failures (the caller classifies the entity as
    errored); swallows and counts child failures.
    """

    def __init__(self, client: Optional[Client] = None):
        self.db = client or get_supabase_client()

    # ===================
    # EXISTENCE CHECKS
    # ===================

    def exists(self, table: str, column: str, value: str) -> bool:
        """True if a row with column == value is already stored."""
        try:
            result = (
                self.db.table(table)
                .select("id")
                .eq(column, value)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(
                "existence_check_failed",
                table=table,
                column=column,
                value=value,
                error=str(e)
            )
            raise DatabaseError("select", str(e), {"table": table}) from e
        return bool(result.data)

    # ===================
    # AGGREGATE WRITES
    # ===================

    def write_product(self, product: ProductImport) -> WriteOutcome:
        if self.exists("products", "handle", product.handle):
            logger.debug("product_exists", handle=product.handle)
            return WriteOutcome.skipped(EntityType.PRODUCTS, product)

        parent = self._insert_parent(EntityType.PRODUCTS, "products", product.to_row(), product.handle)
        product_id = parent["id"]

        failed = 0
        for variant in product.variants:
            failed += self._insert_child(
                "product_variants", variant.to_row(product_id), parent_key=product.handle
            )
        for position, image in enumerate(product.images):
            failed += self._insert_child(
                "product_images", image.to_row(product_id, position, product.title), parent_key=product.handle
            )

        logger.info(
            "product_imported",
            handle=product.handle,
            variants=len(product.variants),
            images=len(product.images),
            failed_children=failed
        )
        return WriteOutcome.imported(EntityType.PRODUCTS, product, failed_children=failed)

    def write_customer(self, customer: CustomerImport) -> WriteOutcome:
        if self.exists("customers", "email", customer.email):
            return WriteOutcome.skipped(EntityType.CUSTOMERS, customer)

        self._insert_parent(EntityType.CUSTOMERS, "customers", customer.to_row(), customer.email)
        logger.info("customer_imported", email=customer.email)
        return WriteOutcome.imported(EntityType.CUSTOMERS, customer)

    def write_order(self, order: OrderImport) -> WriteOutcome:
        if self.exists("orders", "order_number", order.order_number):
            return WriteOutcome.skipped(EntityType.ORDERS, order)

        parent = self._insert_parent(EntityType.ORDERS, "orders", order.to_row(), order.order_number)
        order_id = parent["id"]

        failed = 0
        for item in order.line_items:
            failed += self._insert_line_item(order_id, order.order_number, item)

        if order.customer_email:
            self._refresh_customer_stats(order.customer_email)

        logger.info(
            "order_imported",
            order_number=order.order_number,
            line_items=len(order.line_items),
            failed_children=failed
        )
        return WriteOutcome.imported(EntityType.ORDERS, order, failed_children=failed)

    def write_discount(self, discount: DiscountImport) -> WriteOutcome:
        if self.exists("discount_codes", "code", discount.code):
            return WriteOutcome.skipped(EntityType.DISCOUNTS, discount)

        self._insert_parent(EntityType.DISCOUNTS, "discount_codes", discount.to_row(), discount.code)
        logger.info("discount_imported", code=discount.code, type=discount.type.value)
        return WriteOutcome.imported(EntityType.DISCOUNTS, discount)

    # ===================
    # LINE ITEM RECONCILIATION
    # ===================

    def resolve_line_item_product(self, item: LineItemImport) -> tuple[Optional[str], Optional[str]]:
        """
        Find the stored product (and variant) a line item refers to.

        1. Exact SKU match on product_variants → (product_id, variant_id)
        2. Case-insensitive partial title match on products, using the
           line item name up to the first " - " → (product_id, None).
           When several products match, the first one is taken.

        Returns:
            (product_id, variant_id); (None, None) when nothing matches
        """
        if item.sku:
            result = (
                self.db.table("product_variants")
                .select("id, product_id")
                .eq("sku", item.sku)
                .limit(1)
                .execute()
            )
            if result.data:
                variant = result.data[0]
                return variant["product_id"], variant["id"]

        name = item.title.split(TITLE_SEPARATOR, 1)[0].strip()
        if not name:
            return None, None

        result = (
            self.db.table("products")
            .select("id, title")
            .ilike("title", f"%{escape_like(name)}%")
            .limit(2)
            .execute()
        )
        if not result.data:
            logger.info("line_item_unmatched", title=item.title, sku=item.sku)
            return None, None

        if len(result.data) > 1:
            # TODO: send ambiguous title matches to a review queue instead of taking the first
            logger.warning(
                "ambiguous_product_match",
                title=item.title,
                search=name,
                candidates=[p["title"] for p in result.data]
            )
        return result.data[0]["id"], None

    # ===================
    # CLEAR
    # ===================

    def clear_all(self) -> dict[str, int]:
        """
        Delete every imported row, children first.

        Irreversible. Returns deleted row counts per table.
        """
        deleted: dict[str, int] = {}
        for table in CLEAR_ORDER:
            try:
                result = self.db.table(table).delete().neq("id", _NIL_UUID).execute()
            except Exception as e:
                logger.error("clear_table_failed", table=table, error=str(e))
                raise DatabaseError("delete", str(e), {"table": table}) from e
            deleted[table] = len(result.data or [])
            logger.info("table_cleared", table=table, deleted=deleted[table])
        return deleted

    # ===================
    # HELPERS
    # ===================

    def _insert_parent(self, entity_type: EntityType, table: str, row: dict, key: str) -> dict:
        try:
            result = self.db.table(table).insert(row).execute()
        except Exception as e:
            logger.error(
                "parent_insert_failed",
                entity_type=entity_type.value,
                key=key,
                error=str(e)
            )
            raise EntityWriteError(entity_type.value, key, str(e)) from e

        if not result.data:
            raise EntityWriteError(entity_type.value, key, "insert returned no row")
        return result.data[0]

    def _insert_child(self, table: str, row: dict, parent_key: str) -> int:
        """Insert one child row. Returns 1 if it failed, else 0."""
        try:
            self.db.table(table).insert(row).execute()
            return 0
        except Exception as e:
            logger.error(
                "child_insert_failed",
                table=table,
                parent=parent_key,
                error=str(e)
            )
            return 1

    def _insert_line_item(self, order_id: str, order_number: str, item: LineItemImport) -> int:
        try:
            product_id, variant_id = self.resolve_line_item_product(item)
            self.db.table("order_items").insert(
                item.to_row(order_id, product_id, variant_id)
            ).execute()
            return 0
        except Exception as e:
            logger.error(
                "line_item_insert_failed",
                order_number=order_number,
                title=item.title,
                error=str(e)
            )
            return 1

    def _refresh_customer_stats(self, email: str) -> None:
        try:
            self.db.rpc("update_customer_stats", {"customer_email_param": email}).execute()
        except Exception as e:
            logger.warning("customer_stats_update_failed", email=email, error=str(e))
