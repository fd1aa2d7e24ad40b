"""
Shopify export → storefront schema mapping.

Translates Shopify column names and status vocabularies into the
storefront's tables. Every mapper is lenient: bad numbers become 0,
long strings are truncated, nothing here raises on bad data.

Column vocabulary (source → target):
    Handle                    → products.handle
    Title                     → products.title
    Body (HTML)               → products.description
    Vendor / Type / Tags      → products.vendor / product_type / tags[]
    Status                    → products.status
    Variant Price             → product_variants.price
    Variant Compare At Price  → product_variants.compare_at_price
    Variant Inventory Qty     → product_variants.inventory_quantity
    Variant Grams             → product_variants.weight (oz)
    Image Src                 → product_images.url
    Email                     → customers.email / orders.customer_email
    Name                      → orders.order_number
    Financial / Fulfillment Status → orders.status / payment_status
    Lineitem name/quantity/price/sku → order_items
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from models.shopify_import import (
    CENT,
    ZERO,
    CustomerImport,
    DiscountImport,
    DiscountType,
    ImageImport,
    LineItemImport,
    OrderImport,
    OrderStatus,
    PaymentStatus,
    ProductImport,
    ProductStatus,
    VariantImport,
)
from parsers.csv_parser import RawRow
from services.row_grouper import FieldPolicy, MergePolicy, MergeStrategy
from utils.text_utils import clean_text, generate_handle, truncate

GRAMS_PER_OUNCE = 28.35
DEFAULT_VARIANT_TITLE = "Default Title"
DEFAULT_CUSTOMER_NAME = "Customer"

# Target column maximum lengths
COLUMN_LIMITS = {
    "title": 255,
    "handle": 255,
    "vendor": 255,
    "product_type": 100,
    "tag": 100,
    "variant_title": 255,
    "option": 255,
    "sku": 100,
    "url": 2048,
    "email": 255,
    "first_name": 100,
    "last_name": 100,
    "phone": 50,
    "order_number": 50,
    "customer_name": 255,
    "address": 255,
    "city": 100,
    "state": 100,
    "postal_code": 20,
    "country": 2,
    "discount_code": 50,
}

_NUMBER_NOISE = re.compile(r"[$,\s]")


# ===================
# SCALAR NORMALIZERS
# ===================

def first_of(row: RawRow, *columns: str) -> str:
    """Value of the first listed column that is non-empty, else ""."""
    for column in columns:
        value = (row.get(column) or "").strip()
        if value:
            return value
    return ""


def to_float(value: Any) -> float:
    """
    Coerce a weight or quantity to float.

    "$1,299.50" → 1299.5; "", "n/a", None → 0.0
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _NUMBER_NOISE.sub("", str(value))
    try:
        result = float(cleaned)
    except ValueError:
        return 0.0
    # float() accepts "nan" and "inf"
    if result != result or result in (float("inf"), float("-inf")):
        return 0.0
    return result


def to_money(value: Any) -> Decimal:
    """
    Coerce a money amount to Decimal cents.

    "$1,299.5" → Decimal("1299.50"); "", "n/a", None → Decimal("0.00")
    """
    if value is None:
        return ZERO
    cleaned = _NUMBER_NOISE.sub("", str(value))
    try:
        amount = Decimal(cleaned)
        if not amount.is_finite():
            return ZERO
        return amount.quantize(CENT)
    except InvalidOperation:
        return ZERO


def to_int(value: Any) -> int:
    """Coerce a quantity to int; "3.0" → 3, garbage → 0."""
    return int(to_float(value))


def to_bool(value: Any) -> bool:
    return str(value or "").strip().lower() in ("yes", "true", "1", "y")


def grams_to_ounces(grams: float) -> float:
    """Convert grams to ounces, rounded to 2 decimals."""
    return round(grams / GRAMS_PER_OUNCE, 2)


def split_tags(value: Optional[str]) -> list[str]:
    """'soy, lavender,, gift ' → ['soy', 'lavender', 'gift']"""
    if not value:
        return []
    return [
        truncate(tag.strip(), COLUMN_LIMITS["tag"])
        for tag in value.split(",")
        if tag.strip()
    ]


def build_variant_title(*option_values: Optional[str]) -> str:
    """
    Join up to three option values with " / ".

    ("8 oz", "", "") → "8 oz"; all empty → "Default Title"
    """
    parts = [v.strip() for v in option_values[:3] if v and v.strip()]
    if not parts:
        return DEFAULT_VARIANT_TITLE
    return truncate(" / ".join(parts), COLUMN_LIMITS["variant_title"])


def map_product_status(value: Optional[str]) -> ProductStatus:
    status = (value or "").strip().lower()
    if status == "active":
        return ProductStatus.ACTIVE
    if status == "archived":
        return ProductStatus.ARCHIVED
    return ProductStatus.DRAFT


def map_order_status(financial_status: Optional[str], fulfillment_status: Optional[str]) -> OrderStatus:
    """
    Derive the order status.

    Fulfillment wins over payment: a fulfilled order is delivered whatever
    its financial status. Financial status is consulted only when the
    fulfillment status is empty or carries no shipping meaning
    (e.g. "unfulfilled").
    """
    fulfillment = (fulfillment_status or "").strip().lower()
    financial = (financial_status or "").strip().lower()

    if fulfillment == "fulfilled":
        return OrderStatus.DELIVERED
    if fulfillment in ("shipped", "partial"):
        return OrderStatus.SHIPPED

    if financial == "paid":
        return OrderStatus.PAID
    if financial in ("refunded", "partially_refunded"):
        return OrderStatus.REFUNDED
    if financial == "voided":
        return OrderStatus.CANCELLED
    return OrderStatus.PENDING


def map_payment_status(financial_status: Optional[str]) -> PaymentStatus:
    financial = (financial_status or "").strip().lower()
    if financial == "paid":
        return PaymentStatus.PAID
    if financial in ("refunded", "partially_refunded"):
        return PaymentStatus.REFUNDED
    if financial == "voided":
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


def map_discount_type(value: Optional[str]) -> DiscountType:
    kind = (value or "").strip().lower()
    if "shipping" in kind:
        return DiscountType.FREE_SHIPPING
    if "fixed" in kind or "amount" in kind:
        return DiscountType.FIXED
    return DiscountType.PERCENTAGE


# ===================
# PRODUCTS
# ===================

PRODUCT_MERGE_POLICY: MergePolicy = {
    "title": FieldPolicy(MergeStrategy.FIRST),
    "description": FieldPolicy(MergeStrategy.FIRST),
    "vendor": FieldPolicy(MergeStrategy.FIRST),
    "product_type": FieldPolicy(MergeStrategy.FIRST),
    "tags": FieldPolicy(MergeStrategy.FIRST),
    "status": FieldPolicy(MergeStrategy.FIRST),
    "price": FieldPolicy(MergeStrategy.FIRST_POSITIVE),
    "compare_at_price": FieldPolicy(MergeStrategy.FIRST_POSITIVE, gate="price"),
    "variants": FieldPolicy(MergeStrategy.APPEND),
    "images": FieldPolicy(MergeStrategy.APPEND, dedupe_by="url"),
}


def product_key(row: RawRow) -> Optional[str]:
    """Fallback key for a first row without a handle: slug of its title."""
    return generate_handle(row.get("Title")) or None


def map_variant_row(row: RawRow) -> VariantImport:
    option_values = [
        clean_text(row.get(f"Option{i} Value"), COLUMN_LIMITS["option"])
        for i in (1, 2, 3)
    ]
    option_names = [
        clean_text(row.get(f"Option{i} Name"), COLUMN_LIMITS["option"])
        for i in (1, 2, 3)
    ]
    compare_at = to_money(first_of(row, "Variant Compare At Price", "Compare At Price"))

    return VariantImport(
        title=build_variant_title(*option_values),
        sku=clean_text(first_of(row, "Variant SKU", "SKU"), COLUMN_LIMITS["sku"]),
        price=to_money(first_of(row, "Variant Price", "Price")),
        compare_at_price=compare_at if compare_at > 0 else None,
        inventory_quantity=to_int(first_of(row, "Variant Inventory Qty", "Inventory Qty")),
        weight=grams_to_ounces(to_float(row.get("Variant Grams"))),
        option1_name=option_names[0],
        option1_value=option_values[0],
        option2_name=option_names[1],
        option2_value=option_values[1],
        option3_name=option_names[2],
        option3_value=option_values[2],
    )


def map_image_row(row: RawRow, alt_text: Optional[str] = None) -> Optional[ImageImport]:
    url = first_of(row, "Image Src", "Variant Image")
    if not url:
        return None
    alt = first_of(row, "Image Alt Text") or alt_text
    return ImageImport(url=truncate(url, COLUMN_LIMITS["url"]), alt_text=alt)


def map_product_row(row: RawRow, default_vendor: Optional[str] = None) -> dict[str, Any]:
    """Contribution of one product-export row to its product aggregate."""
    variant = map_variant_row(row)
    title = truncate(row.get("Title"), COLUMN_LIMITS["title"])

    return {
        "title": title,
        "description": first_of(row, "Body (HTML)", "Body HTML"),
        "vendor": clean_text(row.get("Vendor"), COLUMN_LIMITS["vendor"]) or default_vendor,
        "product_type": clean_text(first_of(row, "Type", "Product Type"), COLUMN_LIMITS["product_type"]),
        "tags": split_tags(row.get("Tags")),
        "status": map_product_status(row.get("Status")),
        "price": variant.price,
        "compare_at_price": variant.compare_at_price,
        "variants": variant,
        "images": map_image_row(row, alt_text=title or None),
    }


def new_product(handle: str) -> ProductImport:
    return ProductImport(handle=truncate(handle, COLUMN_LIMITS["handle"]))


# ===================
# CUSTOMERS
# ===================

CUSTOMER_MERGE_POLICY: MergePolicy = {
    "first_name": FieldPolicy(MergeStrategy.FIRST),
    "last_name": FieldPolicy(MergeStrategy.FIRST),
    "phone": FieldPolicy(MergeStrategy.FIRST),
    "accepts_marketing": FieldPolicy(MergeStrategy.FIRST),
    "total_orders": FieldPolicy(MergeStrategy.FIRST),
    "total_spent": FieldPolicy(MergeStrategy.FIRST),
}


def normalize_email(value: str) -> str:
    return truncate(value.strip().lower(), COLUMN_LIMITS["email"])


def map_customer_row(row: RawRow) -> dict[str, Any]:
    return {
        "first_name": clean_text(row.get("First Name"), COLUMN_LIMITS["first_name"]),
        "last_name": clean_text(row.get("Last Name"), COLUMN_LIMITS["last_name"]),
        "phone": clean_text(first_of(row, "Phone", "Default Address Phone"), COLUMN_LIMITS["phone"]),
        "accepts_marketing": to_bool(first_of(row, "Accepts Marketing", "Accepts Email Marketing")),
        "total_orders": to_int(row.get("Total Orders")),
        "total_spent": to_money(row.get("Total Spent")),
    }


def new_customer(email: str) -> CustomerImport:
    return CustomerImport(email=email)


# ===================
# ORDERS
# ===================

ORDER_MERGE_POLICY: MergePolicy = {
    "name": FieldPolicy(MergeStrategy.FIRST),
    "customer_email": FieldPolicy(MergeStrategy.FIRST),
    "customer_name": FieldPolicy(MergeStrategy.FIRST),
    "customer_phone": FieldPolicy(MergeStrategy.FIRST),
    "status": FieldPolicy(MergeStrategy.FIRST),
    "payment_status": FieldPolicy(MergeStrategy.FIRST),
    "subtotal": FieldPolicy(MergeStrategy.FIRST),
    "shipping_cost": FieldPolicy(MergeStrategy.FIRST),
    "tax": FieldPolicy(MergeStrategy.FIRST),
    "discount": FieldPolicy(MergeStrategy.FIRST),
    "total": FieldPolicy(MergeStrategy.FIRST),
    "discount_code": FieldPolicy(MergeStrategy.FIRST),
    "shipping_address_line1": FieldPolicy(MergeStrategy.FIRST),
    "shipping_address_line2": FieldPolicy(MergeStrategy.FIRST),
    "shipping_city": FieldPolicy(MergeStrategy.FIRST),
    "shipping_state": FieldPolicy(MergeStrategy.FIRST),
    "shipping_postal_code": FieldPolicy(MergeStrategy.FIRST),
    "shipping_country": FieldPolicy(MergeStrategy.FIRST),
    "notes": FieldPolicy(MergeStrategy.FIRST),
    "created_at": FieldPolicy(MergeStrategy.FIRST),
    "line_items": FieldPolicy(MergeStrategy.APPEND),
}


def normalize_order_number(value: str) -> str:
    """'#1001' → '1001'"""
    return truncate(value.replace("#", "").strip(), COLUMN_LIMITS["order_number"])


def map_line_item_row(row: RawRow) -> Optional[LineItemImport]:
    name = first_of(row, "Lineitem name", "Line Item Name")
    if not name:
        return None
    return LineItemImport(
        title=truncate(name, COLUMN_LIMITS["title"]),
        quantity=to_int(first_of(row, "Lineitem quantity", "Line Item Quantity")),
        price=to_money(first_of(row, "Lineitem price", "Line Item Price")),
        sku=clean_text(first_of(row, "Lineitem sku", "Line Item SKU"), COLUMN_LIMITS["sku"]),
    )


def map_order_row(row: RawRow, default_country: str = "US") -> dict[str, Any]:
    """Contribution of one order-export row to its order aggregate."""
    financial = row.get("Financial Status")
    fulfillment = row.get("Fulfillment Status")
    name = first_of(row, "Billing Name", "Shipping Name") or DEFAULT_CUSTOMER_NAME
    email = row.get("Email") or ""

    return {
        "name": first_of(row, "Name", "Order Name"),
        "customer_email": normalize_email(email) if email.strip() else "",
        "customer_name": truncate(name, COLUMN_LIMITS["customer_name"]),
        "customer_phone": clean_text(first_of(row, "Phone", "Shipping Phone", "Billing Phone"), COLUMN_LIMITS["phone"]),
        "status": map_order_status(financial, fulfillment),
        "payment_status": map_payment_status(financial),
        "subtotal": to_money(row.get("Subtotal")),
        "shipping_cost": to_money(row.get("Shipping")),
        "tax": to_money(first_of(row, "Taxes", "Tax")),
        "discount": to_money(row.get("Discount Amount")),
        "total": to_money(row.get("Total")),
        "discount_code": clean_text(row.get("Discount Code"), COLUMN_LIMITS["discount_code"]),
        "shipping_address_line1": truncate(first_of(row, "Shipping Street", "Shipping Address1"), COLUMN_LIMITS["address"]),
        "shipping_address_line2": clean_text(row.get("Shipping Address2"), COLUMN_LIMITS["address"]),
        "shipping_city": truncate(row.get("Shipping City"), COLUMN_LIMITS["city"]),
        "shipping_state": truncate(first_of(row, "Shipping Province", "Shipping State"), COLUMN_LIMITS["state"]),
        "shipping_postal_code": truncate(first_of(row, "Shipping Zip", "Shipping Postal Code"), COLUMN_LIMITS["postal_code"]),
        "shipping_country": truncate(row.get("Shipping Country") or default_country, COLUMN_LIMITS["country"]),
        "notes": clean_text(row.get("Notes"), 2000),
        "created_at": first_of(row, "Created at", "Created At") or None,
        "line_items": map_line_item_row(row),
    }


def new_order(order_number: str) -> OrderImport:
    return OrderImport(name=f"#{order_number}", order_number=order_number)


# ===================
# DISCOUNTS
# ===================

DISCOUNT_MERGE_POLICY: MergePolicy = {
    "type": FieldPolicy(MergeStrategy.FIRST),
    "value": FieldPolicy(MergeStrategy.FIRST),
    "min_purchase": FieldPolicy(MergeStrategy.FIRST),
    "max_uses": FieldPolicy(MergeStrategy.FIRST),
    "uses": FieldPolicy(MergeStrategy.FIRST),
    "starts_at": FieldPolicy(MergeStrategy.FIRST),
    "ends_at": FieldPolicy(MergeStrategy.FIRST),
    "active": FieldPolicy(MergeStrategy.FIRST),
}


def normalize_discount_code(value: str) -> str:
    return truncate(value.strip().upper(), COLUMN_LIMITS["discount_code"])


def map_discount_row(row: RawRow) -> dict[str, Any]:
    discount_type = map_discount_type(first_of(row, "Type", "Discount Type"))

    if discount_type == DiscountType.FREE_SHIPPING:
        value = ZERO
    elif discount_type == DiscountType.FIXED:
        value = to_money(first_of(row, "Value", "Amount"))
    else:
        value = to_money(first_of(row, "Value", "Percentage"))

    min_purchase = to_money(first_of(row, "Minimum Purchase", "Min Purchase"))
    max_uses = to_int(first_of(row, "Usage Limit", "Max Uses"))

    return {
        "type": discount_type,
        "value": abs(value),
        "min_purchase": min_purchase or None,
        "max_uses": max_uses or None,
        "uses": to_int(first_of(row, "Times Used", "Uses")),
        "starts_at": first_of(row, "Start Date", "Starts At") or None,
        "ends_at": first_of(row, "End Date", "Ends At") or None,
        "active": (row.get("Status") or "").strip().lower() != "disabled",
    }


def new_discount(code: str) -> DiscountImport:
    return DiscountImport(code=code)
