"""
In-memory aggregates built from Shopify CSV exports.

One aggregate per natural key (handle, email, order number, code).
Child records (variants, images, line items) belong to exactly one
parent and keep the order the rows appeared in.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money_value(amount: Optional[Decimal]) -> Optional[float]:
    """Convert a Decimal amount to float for the store's JSON payload."""
    return float(amount) if amount is not None else None


class EntityType(str, Enum):
    """Importable entity types, in dependency order."""
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    ORDERS = "orders"
    DISCOUNTS = "discounts"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ProductStatus(str, Enum):
    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


# ===================
# PRODUCTS
# ===================

@dataclass
class VariantImport:
    """One purchasable variant of a product."""
    title: str = "Default Title"
    sku: Optional[str] = None
    price: Decimal = ZERO
    compare_at_price: Optional[Decimal] = None
    inventory_quantity: int = 0
    weight: float = 0.0
    weight_unit: str = "oz"
    option1_name: Optional[str] = None
    option1_value: Optional[str] = None
    option2_name: Optional[str] = None
    option2_value: Optional[str] = None
    option3_name: Optional[str] = None
    option3_value: Optional[str] = None

    def to_row(self, product_id: str) -> dict:
        return {
            "product_id": product_id,
            "title": self.title,
            "sku": self.sku,
            "price": money_value(self.price),
            "compare_at_price": money_value(self.compare_at_price),
            "inventory_quantity": self.inventory_quantity,
            "weight": self.weight,
            "weight_unit": self.weight_unit,
            "option1_name": self.option1_name,
            "option1_value": self.option1_value,
            "option2_name": self.option2_name,
            "option2_value": self.option2_value,
            "option3_name": self.option3_name,
            "option3_value": self.option3_value,
        }


@dataclass
class ImageImport:
    """Product image, de-duplicated by URL."""
    url: str
    alt_text: Optional[str] = None

    def to_row(self, product_id: str, position: int, default_alt: Optional[str] = None) -> dict:
        return {
            "product_id": product_id,
            "url": self.url,
            "alt_text": self.alt_text or default_alt,
            "position": position,
        }


@dataclass
class ProductImport:
    """Product aggregate keyed by handle."""
    handle: str
    title: str = ""
    description: str = ""
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    status: ProductStatus = ProductStatus.DRAFT
    price: Optional[Decimal] = None
    compare_at_price: Optional[Decimal] = None
    variants: list[VariantImport] = field(default_factory=list)
    images: list[ImageImport] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.handle

    @property
    def label(self) -> str:
        return self.title or self.handle

    def to_row(self) -> dict:
        return {
            "title": self.title,
            "handle": self.handle,
            "description": self.description,
            "price": money_value(self.price or ZERO),
            "compare_at_price": money_value(self.compare_at_price),
            "vendor": self.vendor,
            "product_type": self.product_type,
            "tags": self.tags or None,
            "status": self.status.value,
        }


# ===================
# CUSTOMERS
# ===================

@dataclass
class CustomerImport:
    """Customer keyed by lower-cased email."""
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    accepts_marketing: bool = False
    total_orders: int = 0
    total_spent: Decimal = ZERO

    @property
    def key(self) -> str:
        return self.email

    @property
    def label(self) -> str:
        return self.email

    def to_row(self) -> dict:
        return {
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "accepts_marketing": self.accepts_marketing,
            "total_orders": self.total_orders,
            "total_spent": money_value(self.total_spent),
        }


# ===================
# ORDERS
# ===================

@dataclass
class LineItemImport:
    """Order line; product is resolved at write time."""
    title: str
    quantity: int = 0
    price: Decimal = ZERO
    sku: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return (self.price * self.quantity).quantize(CENT)

    def to_row(
        self,
        order_id: str,
        product_id: Optional[str],
        variant_id: Optional[str]
    ) -> dict:
        return {
            "order_id": order_id,
            "product_id": product_id,
            "variant_id": variant_id,
            "title": self.title,
            "sku": self.sku,
            "quantity": self.quantity,
            "price": money_value(self.price),
            "total": money_value(self.total),
        }


@dataclass
class OrderImport:
    """Order aggregate keyed by the export's order name (e.g. '#1001')."""
    name: str
    order_number: str = ""
    customer_email: str = ""
    customer_name: str = "Customer"
    customer_phone: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    subtotal: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    tax: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO
    discount_code: Optional[str] = None
    shipping_address_line1: str = ""
    shipping_address_line2: Optional[str] = None
    shipping_city: str = ""
    shipping_state: str = ""
    shipping_postal_code: str = ""
    shipping_country: str = "US"
    notes: Optional[str] = None
    created_at: Optional[str] = None
    line_items: list[LineItemImport] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.order_number

    @property
    def label(self) -> str:
        return self.name

    def to_row(self) -> dict:
        row = {
            "order_number": self.order_number,
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "subtotal": money_value(self.subtotal),
            "shipping_cost": money_value(self.shipping_cost),
            "tax": money_value(self.tax),
            "discount": money_value(self.discount),
            "total": money_value(self.total),
            "discount_code": self.discount_code,
            "shipping_address_line1": self.shipping_address_line1,
            "shipping_address_line2": self.shipping_address_line2,
            "shipping_city": self.shipping_city,
            "shipping_state": self.shipping_state,
            "shipping_postal_code": self.shipping_postal_code,
            "shipping_country": self.shipping_country,
            "notes": self.notes,
        }
        # Let the database stamp created_at when the export has none
        if self.created_at:
            row["created_at"] = self.created_at
        return row


# ===================
# DISCOUNTS
# ===================

@dataclass
class DiscountImport:
    """Discount code keyed by upper-cased code."""
    code: str
    type: DiscountType = DiscountType.PERCENTAGE
    value: Decimal = ZERO
    min_purchase: Optional[Decimal] = None
    max_uses: Optional[int] = None
    uses: int = 0
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    active: bool = True

    @property
    def key(self) -> str:
        return self.code

    @property
    def label(self) -> str:
        return self.code

    def to_row(self) -> dict:
        return {
            "code": self.code,
            "type": self.type.value,
            "value": money_value(self.value),
            "min_purchase": money_value(self.min_purchase),
            "max_uses": self.max_uses,
            "uses": self.uses,
            "starts_at": self.starts_at,
            "ends_at": self.ends_at,
            "active": self.active,
        }


# ===================
# OUTCOMES
# ===================

class OutcomeStatus(str, Enum):
    IMPORTED = "imported"
    SKIPPED = "skipped"
    ERRORED = "errored"


@dataclass
class WriteOutcome:
    """
    Result of writing one aggregate.

    An aggregate whose parent was written but some children failed is
    still IMPORTED; failed_children records how many were lost.
    """
    entity_type: EntityType
    key: str
    label: str
    status: OutcomeStatus
    reason: Optional[str] = None
    failed_children: int = 0

    @property
    def partial(self) -> bool:
        return self.status == OutcomeStatus.IMPORTED and self.failed_children > 0

    @classmethod
    def imported(cls, entity_type: EntityType, entity, failed_children: int = 0) -> "WriteOutcome":
        return cls(entity_type, entity.key, entity.label, OutcomeStatus.IMPORTED,
                   failed_children=failed_children)

    @classmethod
    def skipped(cls, entity_type: EntityType, entity) -> "WriteOutcome":
        return cls(entity_type, entity.key, entity.label, OutcomeStatus.SKIPPED)

    @classmethod
    def errored(cls, entity_type: EntityType, entity, reason: str) -> "WriteOutcome":
        return cls(entity_type, entity.key, entity.label, OutcomeStatus.ERRORED, reason=reason)
