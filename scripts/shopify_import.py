"""
Shopify Import Script: loads Shopify CSV exports into Supabase.

Imports products, customers, orders and discounts in that order.
Records that already exist (same handle / email / order number / code)
are skipped, so the script can be re-run safely.

Usage:
    python scripts/shopify_import.py
    python scripts/shopify_import.py --data-dir ~/Downloads/shopify
    python scripts/shopify_import.py --clear     # wipes existing data first

Exit status is 1 when configuration is missing or any record failed.
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

# Allow imports from the project root when running as a script
_project_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _project_dir)

from pydantic import ValidationError as SettingsError

from config import get_settings, configure_logging
from exceptions import AppError
from services.shopify_import_service import EXPECTED_FILES, ShopifyImportService

SEPARATOR = "=" * 61


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import Shopify CSV exports (products, customers, orders, discounts)."
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Folder containing the Shopify CSV exports "
             "(default: IMPORT_DATA_DIR or data/shopify-export)",
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete ALL existing products, customers, orders and discounts first",
    )
    return parser


def print_expected_files(data_dir: Path) -> None:
    print(f"Created import folder: {data_dir}")
    print("")
    print("Export your data from Shopify Admin and save it there as:")
    for hint in EXPECTED_FILES.values():
        print(f"  - {hint}")
    print("")
    print("Then run this script again.")


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except SettingsError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        print("ERROR: Missing Supabase configuration.")
        print(f"  Set SUPABASE_URL and SUPABASE_SERVICE_KEY (missing: {', '.join(missing)})")
        return 1

    configure_logging(settings.log_level, json_output=settings.is_production)

    data_dir = Path(args.data_dir) if args.data_dir else settings.import_data_dir

    print(SEPARATOR)
    print("  SHOPIFY IMPORT")
    print(SEPARATOR)
    print(f"  Data folder: {data_dir}")

    if not data_dir.is_dir():
        data_dir.mkdir(parents=True, exist_ok=True)
        print_expected_files(data_dir)
        return 0

    if args.clear:
        print("  WARNING: --clear deletes all existing data")

    try:
        report = ShopifyImportService(settings=settings).run(data_dir, clear=args.clear)
    except AppError as e:
        print(f"\nERROR: {e.message}")
        if e.details:
            print(f"  Details: {e.details}")
        return 1

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
