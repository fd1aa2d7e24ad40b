"""
Shopify export import pipeline.

    file → parse_csv → group_rows → ImportWriter → ImportRunReport

Entity types run one after another in dependency order (orders look up
the products written before them). Within a type, aggregates are
written one at a time; a failing aggregate is reported and the run
moves on.
"""

import functools
from pathlib import Path
from typing import Callable, Optional, Union

import structlog
from supabase import Client

from config import get_settings, Settings
from exceptions import ImportFileError
from models.shopify_import import (
    CustomerImport,
    DiscountImport,
    EntityType,
    OrderImport,
    ProductImport,
    WriteOutcome,
)
from parsers.csv_parser import RawRow, parse_csv, read_csv_file
from services import field_mapper as fm
from services.import_report import ImportRunReport
from services.import_writer_service import ImportWriter
from services.row_grouper import group_rows

logger = structlog.get_logger(__name__)

IMPORT_ORDER = [
    EntityType.PRODUCTS,
    EntityType.CUSTOMERS,
    EntityType.ORDERS,
    EntityType.DISCOUNTS,
]

# Case-insensitive substring each export's file name must contain
FILE_HINTS = {
    EntityType.PRODUCTS: "product",
    EntityType.CUSTOMERS: "customer",
    EntityType.ORDERS: "order",
    EntityType.DISCOUNTS: "discount",
}

EXPECTED_FILES = {
    EntityType.PRODUCTS: "products.csv (from Products export)",
    EntityType.CUSTOMERS: "customers.csv (from Customers export)",
    EntityType.ORDERS: "orders.csv (from Orders export)",
    EntityType.DISCOUNTS: "discounts.csv (from Discounts export)",
}


def detect_files(data_dir: Union[str, Path]) -> dict[EntityType, Path]:
    """
    Match CSV files in a folder to entity types by name.

    The first file (alphabetically) containing the hint wins.
    """
    folder = Path(data_dir)
    csv_files = sorted(
        p for p in folder.iterdir()
        if p.is_file() and p.name.lower().endswith(".csv")
    )

    detected: dict[EntityType, Path] = {}
    for entity_type, hint in FILE_HINTS.items():
        for path in csv_files:
            if hint in path.name.lower():
                detected[entity_type] = path
                break
    return detected


# ===================
# GROUPING PER ENTITY TYPE
# ===================

def group_products(rows: list[RawRow], default_vendor: Optional[str] = None) -> dict[str, ProductImport]:
    return group_rows(
        rows,
        key_columns=("Handle",),
        factory=fm.new_product,
        map_row=functools.partial(fm.map_product_row, default_vendor=default_vendor),
        policy=fm.PRODUCT_MERGE_POLICY,
        fallback_key=fm.product_key,
    )


def group_customers(rows: list[RawRow]) -> dict[str, CustomerImport]:
    return group_rows(
        rows,
        key_columns=("Email",),
        factory=fm.new_customer,
        map_row=fm.map_customer_row,
        policy=fm.CUSTOMER_MERGE_POLICY,
        normalize_key=fm.normalize_email,
    )


def group_orders(rows: list[RawRow], default_country: str = "US") -> dict[str, OrderImport]:
    return group_rows(
        rows,
        key_columns=("Name", "Order Name"),
        factory=fm.new_order,
        map_row=functools.partial(fm.map_order_row, default_country=default_country),
        policy=fm.ORDER_MERGE_POLICY,
        normalize_key=fm.normalize_order_number,
    )


def group_discounts(rows: list[RawRow]) -> dict[str, DiscountImport]:
    return group_rows(
        rows,
        key_columns=("Code",),
        factory=fm.new_discount,
        map_row=fm.map_discount_row,
        policy=fm.DISCOUNT_MERGE_POLICY,
        normalize_key=fm.normalize_discount_code,
    )


class ShopifyImportService:
    """
    Runs the Shopify import against Supabase.

    Args:
        client: Supabase client (defaults to the shared one)
        settings: Settings (defaults to get_settings())
        report: Run reporter (a fresh one per service by default)
    """

    def __init__(
        self,
        client: Optional[Client] = None,
        settings: Optional[Settings] = None,
        report: Optional[ImportRunReport] = None,
    ):
        self.settings = settings or get_settings()
        self.writer = ImportWriter(client)
        self.report = report or ImportRunReport()

    # ===================
    # FULL RUN
    # ===================

    def run(self, data_dir: Union[str, Path], clear: bool = False) -> ImportRunReport:
        """
        Import every export found in data_dir.

        Args:
            data_dir: Folder holding the CSV exports
            clear: Delete all existing data first (no confirmation)

        Returns:
            The run report
        """
        files = detect_files(data_dir)
        logger.info(
            "shopify_import_started",
            data_dir=str(data_dir),
            files={t.value: p.name for t, p in files.items()},
            clear=clear
        )

        if clear:
            deleted = self.writer.clear_all()
            self.report.echo(f"Cleared existing data: {sum(deleted.values())} rows deleted")

        importers: dict[EntityType, Callable[[list[RawRow]], None]] = {
            EntityType.PRODUCTS: self._import_product_rows,
            EntityType.CUSTOMERS: self._import_customer_rows,
            EntityType.ORDERS: self._import_order_rows,
            EntityType.DISCOUNTS: self._import_discount_rows,
        }

        for entity_type in IMPORT_ORDER:
            path = files.get(entity_type)
            if path is None:
                self.report.missing_file(entity_type)
                continue
            try:
                rows = read_csv_file(path)
            except ImportFileError as e:
                logger.error(
                    "import_file_failed",
                    entity_type=entity_type.value,
                    path=str(path),
                    error=e.message
                )
                self.report.file_failed(entity_type, path.name, e.message)
                continue
            importers[entity_type](rows)

        self.report.print_summary()
        logger.info("shopify_import_finished", **self.report.to_dict())
        return self.report

    # ===================
    # SINGLE EXPORTS
    # ===================

    def import_products(self, content: Union[str, bytes]) -> ImportRunReport:
        self._import_product_rows(parse_csv(content))
        return self.report

    def import_customers(self, content: Union[str, bytes]) -> ImportRunReport:
        self._import_customer_rows(parse_csv(content))
        return self.report

    def import_orders(self, content: Union[str, bytes]) -> ImportRunReport:
        self._import_order_rows(parse_csv(content))
        return self.report

    def import_discounts(self, content: Union[str, bytes]) -> ImportRunReport:
        self._import_discount_rows(parse_csv(content))
        return self.report

    # ===================
    # HELPERS
    # ===================

    def _import_product_rows(self, rows: list[RawRow]) -> None:
        self.report.start(EntityType.PRODUCTS, len(rows))
        products = group_products(rows, default_vendor=self.settings.default_vendor)
        self._write_all(EntityType.PRODUCTS, products, self.writer.write_product)

    def _import_customer_rows(self, rows: list[RawRow]) -> None:
        self.report.start(EntityType.CUSTOMERS, len(rows))
        self._write_all(EntityType.CUSTOMERS, group_customers(rows), self.writer.write_customer)

    def _import_order_rows(self, rows: list[RawRow]) -> None:
        self.report.start(EntityType.ORDERS, len(rows))
        orders = group_orders(rows, default_country=self.settings.default_country)
        self._write_all(EntityType.ORDERS, orders, self.writer.write_order)

    def _import_discount_rows(self, rows: list[RawRow]) -> None:
        self.report.start(EntityType.DISCOUNTS, len(rows))
        self._write_all(EntityType.DISCOUNTS, group_discounts(rows), self.writer.write_discount)

    def _write_all(self, entity_type: EntityType, entities: dict, write: Callable) -> None:
        for entity in entities.values():
            try:
                outcome = write(entity)
            except Exception as e:
                logger.error(
                    "entity_import_failed",
                    entity_type=entity_type.value,
                    key=entity.key,
                    error=str(e),
                    error_type=type(e).__name__
                )
                outcome = WriteOutcome.errored(entity_type, entity, str(e))
            self.report.record(outcome)
        self.report.finish(entity_type)
