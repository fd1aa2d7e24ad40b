"""
Unit tests for the Shopify import pipeline.

Runs full imports against the in-memory Supabase mock.
"""

from unittest.mock import patch

import pytest

from exceptions import ImportFileError
from models.shopify_import import EntityType
from services.import_report import ImportRunReport
from services.shopify_import_service import (
    ShopifyImportService,
    detect_files,
    group_orders,
    group_products,
)
from parsers.csv_parser import parse_csv, read_csv_file
from tests.factories import (
    CUSTOMER_COLUMNS,
    DISCOUNT_COLUMNS,
    ORDER_COLUMNS,
    PRODUCT_COLUMNS,
    CustomerRowFactory,
    DiscountRowFactory,
    OrderRowFactory,
    ProductRowFactory,
    to_csv_text,
)


@pytest.fixture
def service_factory(mock_supabase, test_settings, echo_lines):
    """Builds a service with a fresh report per run."""
    def build() -> ShopifyImportService:
        return ShopifyImportService(
            client=mock_supabase,
            settings=test_settings,
            report=ImportRunReport(echo=echo_lines.append),
        )
    return build


@pytest.fixture
def export_dir(tmp_path):
    """A folder with all four Shopify exports."""
    products = [
        ProductRowFactory.create(handle="candle-a", title="Candle A", price="10.00", sku="A-8"),
        ProductRowFactory.create_variant(price="15.00", sku="A-16"),
        ProductRowFactory.create(handle="candle-b", title="Candle B", price="5.00", sku="B-8"),
    ]
    customers = [
        CustomerRowFactory.create(email="jane@example.com"),
        CustomerRowFactory.create(email="sam@example.com"),
    ]
    orders = [
        OrderRowFactory.create(name="#1001", email="jane@example.com",
                               lineitem_name="Candle A - 8 oz", lineitem_sku="A-8"),
        OrderRowFactory.create_line_item("Candle B - 8 oz", lineitem_sku="B-8"),
        OrderRowFactory.create(name="#1002", email="sam@example.com",
                               lineitem_name="Candle B - 8 oz"),
    ]
    discounts = [DiscountRowFactory.create(code="welcome10")]

    (tmp_path / "products_export_1.csv").write_text(to_csv_text(products, PRODUCT_COLUMNS))
    (tmp_path / "customers_export.csv").write_text(to_csv_text(customers, CUSTOMER_COLUMNS))
    (tmp_path / "orders_export_1.csv").write_text(to_csv_text(orders, ORDER_COLUMNS))
    (tmp_path / "Discounts.CSV").write_text(to_csv_text(discounts, DISCOUNT_COLUMNS))
    (tmp_path / "notes.txt").write_text("not an export")
    return tmp_path


# ===================
# FILE DETECTION TESTS
# ===================

class TestDetectFiles:
    """Tests for detect_files()."""

    def test_matches_by_name_case_insensitive(self, export_dir):
        """Should match each export by substring, ignoring case."""
        files = detect_files(export_dir)

        assert files[EntityType.PRODUCTS].name == "products_export_1.csv"
        assert files[EntityType.CUSTOMERS].name == "customers_export.csv"
        assert files[EntityType.ORDERS].name == "orders_export_1.csv"
        assert files[EntityType.DISCOUNTS].name == "Discounts.CSV"

    def test_ignores_non_csv(self, tmp_path):
        """Should ignore files without a .csv suffix."""
        (tmp_path / "products.xlsx").write_text("")

        assert detect_files(tmp_path) == {}


# ===================
# GROUPING TESTS
# ===================

class TestGrouping:
    """Tests for entity grouping over parsed exports."""

    def test_candle_a_and_candle_b(self):
        """Should fold the continuation row into candle-a."""
        rows = [
            ProductRowFactory.create(handle="candle-a", title="Candle A", price="10.00"),
            ProductRowFactory.create_variant(price="15.00"),
            ProductRowFactory.create(handle="candle-b", title="Candle B", price="5.00"),
        ]

        products = group_products(parse_csv(to_csv_text(rows, PRODUCT_COLUMNS)))

        assert list(products.keys()) == ["candle-a", "candle-b"]
        candle_a = products["candle-a"]
        assert [v.price for v in candle_a.variants] == [10.0, 15.0]
        assert candle_a.price == 10.0
        assert candle_a.title == "Candle A"
        candle_b = products["candle-b"]
        assert [v.price for v in candle_b.variants] == [5.0]
        assert candle_b.price == 5.0

    def test_duplicate_images_collapsed(self):
        """Should keep one image per URL."""
        rows = [
            ProductRowFactory.create(handle="candle-a", image_src="https://cdn/a.jpg"),
            ProductRowFactory.create_variant(image_src="https://cdn/a.jpg"),
            ProductRowFactory.create_variant(image_src="https://cdn/a2.jpg"),
        ]

        products = group_products(parse_csv(to_csv_text(rows, PRODUCT_COLUMNS)))

        assert len(products["candle-a"].variants) == 3
        assert [i.url for i in products["candle-a"].images] == ["https://cdn/a.jpg", "https://cdn/a2.jpg"]

    def test_default_vendor(self):
        """Should apply the default vendor to products without one."""
        rows = [ProductRowFactory.create(handle="candle-a", vendor="")]

        products = group_products(rows, default_vendor="My Kind Kandles")

        assert products["candle-a"].vendor == "My Kind Kandles"

    def test_order_line_items_in_row_order(self):
        """Should attach every line item row to its order."""
        rows = [
            OrderRowFactory.create(name="#1001", lineitem_name="Candle A - 8 oz"),
            OrderRowFactory.create_line_item("Candle B - 8 oz"),
            OrderRowFactory.create_line_item("Candle C - 8 oz"),
        ]

        orders = group_orders(rows)

        order = orders["1001"]
        assert order.name == "#1001"
        assert [i.title for i in order.line_items] == [
            "Candle A - 8 oz", "Candle B - 8 oz", "Candle C - 8 oz"
        ]
        assert order.total == 30.5


# ===================
# PIPELINE TESTS
# ===================

class TestShopifyImportRun:
    """Tests for ShopifyImportService.run()."""

    def test_full_import(self, service_factory, export_dir, mock_supabase):
        """Should import every entity type in dependency order."""
        report = service_factory().run(export_dir)

        assert report.tally(EntityType.PRODUCTS).imported == 2
        assert report.tally(EntityType.CUSTOMERS).imported == 2
        assert report.tally(EntityType.ORDERS).imported == 2
        assert report.tally(EntityType.DISCOUNTS).imported == 1
        assert report.exit_code == 0
        assert len(mock_supabase.rows("product_variants")) == 3
        assert len(mock_supabase.rows("order_items")) == 3
        assert mock_supabase.rows("discount_codes")[0]["code"] == "WELCOME10"

    def test_line_items_linked_to_imported_products(self, service_factory, export_dir, mock_supabase):
        """Should link order items to products imported earlier in the run."""
        service_factory().run(export_dir)

        products = {p["title"]: p["id"] for p in mock_supabase.rows("products")}
        items = mock_supabase.rows("order_items")
        assert items[0]["product_id"] == products["Candle A"]
        assert items[0]["variant_id"] is not None
        assert items[2]["product_id"] == products["Candle B"]

    def test_idempotent_across_three_runs(self, service_factory, export_dir, mock_supabase):
        """Should insert once, then skip everything on later runs."""
        service_factory().run(export_dir)
        second = service_factory().run(export_dir)
        third = service_factory().run(export_dir)

        assert len(mock_supabase.rows("products")) == 2
        assert len(mock_supabase.rows("product_variants")) == 3
        assert len(mock_supabase.rows("orders")) == 2
        assert len(mock_supabase.rows("order_items")) == 3
        for report in (second, third):
            assert report.total_imported == 0
            assert report.total_skipped == 7
            assert report.exit_code == 0

    def test_clear_then_import(self, service_factory, export_dir, mock_supabase):
        """Should leave only the freshly imported rows after --clear."""
        mock_supabase.set_table_data("products", [{"id": "old", "handle": "old-candle", "title": "Old"}])
        mock_supabase.set_table_data("product_variants", [{"id": "old-v", "product_id": "old", "sku": "OLD"}])
        mock_supabase.set_table_data("order_items", [{"id": "old-i", "order_id": "old-o"}])
        mock_supabase.set_table_data("orders", [{"id": "old-o", "order_number": "999"}])

        report = service_factory().run(export_dir, clear=True)

        assert report.total_skipped == 0
        assert {p["handle"] for p in mock_supabase.rows("products")} == {"candle-a", "candle-b"}
        assert all(v["sku"] != "OLD" for v in mock_supabase.rows("product_variants"))
        assert len(mock_supabase.rows("product_variants")) == 3
        assert {o["order_number"] for o in mock_supabase.rows("orders")} == {"1001", "1002"}
        assert all(i["order_id"] != "old-o" for i in mock_supabase.rows("order_items"))

    def test_missing_file_skips_type(self, service_factory, export_dir, echo_lines):
        """Should skip an entity type whose export is missing."""
        (export_dir / "Discounts.CSV").unlink()

        report = service_factory().run(export_dir)

        assert EntityType.DISCOUNTS not in report.tallies
        assert "  No discounts file found, skipping" in echo_lines
        assert report.exit_code == 0

    def test_failed_entity_does_not_abort_run(self, service_factory, export_dir, mock_supabase):
        """Should count a failed product and keep importing the rest."""
        mock_supabase.fail("products", "insert", when=lambda row: row["handle"] == "candle-a")

        report = service_factory().run(export_dir)

        tally = report.tally(EntityType.PRODUCTS)
        assert tally.imported == 1
        assert tally.errored == 1
        assert tally.errors[0]["key"] == "candle-a"
        assert report.tally(EntityType.CUSTOMERS).imported == 2
        assert report.exit_code == 1

    def test_unbalanced_quote_does_not_abort_run(self, service_factory, export_dir, mock_supabase, echo_lines):
        """Should import a malformed export as far as it goes and finish the run."""
        (export_dir / "products_export_1.csv").write_text('Handle,Title\ncandle-a,"Candle A\n')

        report = service_factory().run(export_dir)

        assert [p["handle"] for p in mock_supabase.rows("products")] == ["candle-a"]
        assert report.tally(EntityType.CUSTOMERS).imported == 2
        assert report.tally(EntityType.DISCOUNTS).imported == 1
        assert "  IMPORT SUMMARY" in echo_lines

    def test_finish_log_carries_tallies(self, service_factory, export_dir):
        """Should log the per-type tallies when the run ends."""
        with patch("services.shopify_import_service.logger") as logger:
            service_factory().run(export_dir)

        event, fields = logger.info.call_args.args[0], logger.info.call_args.kwargs
        assert event == "shopify_import_finished"
        assert fields["imported"] == 7
        assert [e["entity_type"] for e in fields["entities"]] == [
            "products", "customers", "orders", "discounts"
        ]

    def test_unreadable_file_counted_and_run_continues(self, service_factory, export_dir, echo_lines):
        """Should report an unreadable export as errored and import the other types."""
        def read(path):
            if "product" in path.name:
                raise ImportFileError(str(path), "permission denied")
            return read_csv_file(path)

        with patch("services.shopify_import_service.read_csv_file", side_effect=read):
            report = service_factory().run(export_dir)

        assert report.tally(EntityType.PRODUCTS).errored == 1
        assert report.tally(EntityType.CUSTOMERS).imported == 2
        assert report.exit_code == 1
        assert "  X Could not read products_export_1.csv: Cannot read import file: permission denied" in echo_lines
        assert "  IMPORT SUMMARY" in echo_lines


# ===================
# SINGLE EXPORT TESTS
# ===================

class TestSingleExportImports:
    """Tests for import_products() and friends."""

    def test_import_products_from_content(self, service_factory, mock_supabase, echo_lines):
        """Should import products from CSV text."""
        content = to_csv_text([
            ProductRowFactory.create(handle="candle-a", title="Candle A"),
        ], PRODUCT_COLUMNS)

        report = service_factory().import_products(content)

        assert report.tally(EntityType.PRODUCTS).imported == 1
        assert "  + Imported: Candle A" in echo_lines
        assert "  Products: 1 imported, 0 skipped, 0 errored" in echo_lines

    def test_import_customers_dedupes_email_case(self, service_factory, mock_supabase):
        """Should treat emails differing only in case as one customer."""
        content = to_csv_text([
            CustomerRowFactory.create(email="Jane@Example.com"),
            CustomerRowFactory.create(email="jane@example.com"),
        ], CUSTOMER_COLUMNS)

        report = service_factory().import_customers(content)

        assert report.tally(EntityType.CUSTOMERS).imported == 1
        assert mock_supabase.rows("customers")[0]["email"] == "jane@example.com"

    def test_import_orders_status(self, service_factory, mock_supabase):
        """Should store delivered for fulfilled orders."""
        content = to_csv_text([
            OrderRowFactory.create(name="#1001", financial_status="pending", fulfillment_status="fulfilled"),
        ], ORDER_COLUMNS)

        service_factory().import_orders(content)

        order = mock_supabase.rows("orders")[0]
        assert order["order_number"] == "1001"
        assert order["status"] == "delivered"
        assert order["payment_status"] == "pending"

    def test_import_discounts_empty_file(self, service_factory, mock_supabase):
        """Should import nothing from a header-only file."""
        report = service_factory().import_discounts(",".join(DISCOUNT_COLUMNS) + "\n")

        assert report.tally(EntityType.DISCOUNTS).found_rows == 0
        assert report.total_imported == 0
