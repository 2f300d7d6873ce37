"""Order, line item, payment and table models."""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, computed_field, field_validator

from restaurant_pos_service.models.catalog_models import ItemType
from restaurant_pos_service.models.document_models import (
    SORT_KEY_SEPARATOR,
    DocumentModel,
    utc_now,
)


class PricingMode(str, Enum):
    """Whether catalog prices already contain VAT."""

    EXCLUSIVE = "exclusive"
    INCLUSIVE = "inclusive"


class OrderStatus(str, Enum):
    """Enumeration of order status values."""

    OPEN = "open"
    PREPARING = "preparing"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TableStatus(str, Enum):
    """Enumeration of dining table status values."""

    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"


def line_id_for(item_type: ItemType, item_id: str, variation_id: str | None = None) -> str:
    """Line identifier used to merge repeated adds of the same entry and variation."""
    if variation_id:
        return f"{item_type.value}-{item_id}-{variation_id}"
    return f"{item_type.value}-{item_id}"


class OrderItem(BaseModel):
    """A single product/service line in a cart, order, quote or invoice.

    ``total`` is always ``unit_price * quantity`` and cannot be set directly.
    """

    id: str = Field(..., description="Line identifier")
    type: ItemType
    item_id: str = Field(..., description="Product or service id")
    variation_id: str | None = Field(None, description="Selected product variation")
    name: str
    description: str | None = None
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., gt=0)
    notes: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


CartItem = OrderItem

CART_TTL = timedelta(days=7)


def cart_expiry(now: datetime | None = None) -> int:
    """Epoch seconds after which an untouched cart is dropped."""
    return int(((now or utc_now()) + CART_TTL).timestamp())


class SavedCart(DocumentModel):
    """Cart of one staff member between requests.

    ``id`` is the user id. ``expires_at`` doubles as the DynamoDB TTL
    attribute, and a cart read after it has passed is treated as empty.
    """

    collection = "carts"

    items: list[CartItem] = Field(default_factory=list)
    expires_at: int = Field(default_factory=cart_expiry)

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= int((now or utc_now()).timestamp())


class Order(DocumentModel):
    """A checked-out order.

    ``subtotal``, ``tax_amount`` and ``total`` are computed at checkout from
    the items and pricing mode. ``amount_paid`` is the running sum of
    payments, maintained in the same transaction that records each payment.
    ``paid`` is an explicit override set when staff mark the order as paid.
    """

    collection = "orders"

    order_number: str
    items: list[OrderItem] = Field(default_factory=list)
    subtotal: Decimal = Field(default=Decimal("0"))
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0)
    tax_amount: Decimal = Field(default=Decimal("0"))
    total: Decimal = Field(default=Decimal("0"))
    pricing_mode: PricingMode = PricingMode.EXCLUSIVE
    status: OrderStatus = OrderStatus.OPEN
    paid: bool = False
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)
    table_id: str | None = None
    table_name: str | None = None
    customer_id: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_email: str | None = None
    order_type: str = "dine-in"
    notes: str | None = None
    include_qr: bool = True
    created_by_id: str = "unknown"
    created_by_name: str = "Unknown User"


class OrderPayment(DocumentModel):
    """Payment applied to an order or invoice.

    Stored under ``payments#{parent_id}#{payment_id}`` so all payments of one
    order or invoice can be read with a single prefix query.
    """

    collection = "payments"

    order_id: str | None = None
    invoice_id: str | None = None
    amount: Decimal = Field(..., gt=0, description="Payment amount, always positive")
    payment_method: str = Field(..., description="cash, card, online, ...")
    payment_date: datetime = Field(default_factory=utc_now)
    reference: str | None = None
    notes: str | None = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Validate that the amount is positive."""
        if v <= 0:
            raise ValueError("amount must be positive")
        return v

    @property
    def parent_id(self) -> str:
        return self.order_id or self.invoice_id or ""

    @property
    def sort_key(self) -> str:
        return SORT_KEY_SEPARATOR.join([self.collection, self.parent_id, self.id])


class Table(DocumentModel):
    """Dining table."""

    collection = "tables"

    name: str = Field(..., min_length=1)
    capacity: int = Field(..., gt=0, description="Number of seats")
    status: TableStatus = TableStatus.AVAILABLE


class Customer(DocumentModel):
    """Customer selectable at checkout."""

    collection = "customers"

    name: str = Field(..., min_length=1)
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    vat_number: str | None = None


class PaymentType(DocumentModel):
    """Configured payment method (cash, card...)."""

    collection = "paymentTypes"

    name: str = Field(..., min_length=1)
    description: str | None = None


class OrderType(DocumentModel):
    """Configured order type (dine-in, take-away, delivery...)."""

    collection = "orderTypes"

    name: str = Field(..., min_length=1)
    description: str | None = None
