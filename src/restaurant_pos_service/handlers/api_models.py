"""Request and response bodies of the POS API."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from restaurant_pos_service.models.catalog_models import CategoryType, ItemType
from restaurant_pos_service.models.invoice_models import DocumentKind, InvoiceStatus
from restaurant_pos_service.models.order_models import CartItem, OrderStatus, TableStatus
from restaurant_pos_service.services.order_service import CartSummary


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class CategoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    type: CategoryType = CategoryType.BOTH
    description: str | None = None
    parent_id: str | None = None


class CategoryUpdateRequest(BaseModel):
    """Partial category update; only fields that are sent are changed.

    Sending ``parent_id: null`` moves the category to the root.
    """

    name: str | None = Field(default=None, min_length=1)
    type: CategoryType | None = None
    description: str | None = None
    parent_id: str | None = None


class CategoryOverview(BaseModel):
    id: str
    name: str
    type: str
    level: int
    path: str
    item_count: int
    subcategory_count: int


class VariationRequest(BaseModel):
    id: str | None = None
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    description: str | None = None


class CatalogItemCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    description: str | None = None
    category_id: str | None = None
    variations: list[VariationRequest] = Field(default_factory=list)


class CatalogItemUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    price: Decimal | None = Field(default=None, ge=0)
    description: str | None = None
    category_id: str | None = None


class TableStatusRequest(BaseModel):
    status: TableStatus


class CartAddRequest(BaseModel):
    type: ItemType
    item_id: str
    quantity: int = 1
    variation_id: str | None = None
    notes: str | None = None


class CartQuantityRequest(BaseModel):
    quantity: int


class CartResponse(BaseModel):
    """Cart lines with totals; money is unrounded."""

    items: list[CartItem]
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal
    vat_rate: Decimal
    vat_inclusive: bool

    @classmethod
    def from_summary(cls, summary: CartSummary) -> "CartResponse":
        return cls(
            items=summary.items,
            subtotal=summary.totals.subtotal,
            vat_amount=summary.totals.vat_amount,
            total=summary.totals.total,
            vat_rate=summary.vat_rate,
            vat_inclusive=summary.vat_inclusive,
        )


class CheckoutRequest(BaseModel):
    order_type: str = "dine-in"
    table_id: str | None = None
    customer_id: str | None = None
    notes: str | None = None
    include_qr: bool = True


class OrderStatusRequest(BaseModel):
    status: OrderStatus


class PaymentRequest(BaseModel):
    amount: Decimal
    payment_method: str = Field(..., min_length=1)
    reference: str | None = None
    notes: str | None = None


class InvoiceLineRequest(BaseModel):
    type: ItemType = ItemType.PRODUCT
    item_id: str | None = None
    name: str = Field(..., min_length=1)
    description: str | None = None
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(default=1, gt=0)
    notes: str | None = None


class InvoiceCreateRequest(BaseModel):
    kind: DocumentKind = DocumentKind.INVOICE
    client_name: str = Field(..., min_length=1)
    client_email: str | None = None
    client_address: str | None = None
    client_vat: str | None = None
    customer_id: str | None = None
    items: list[InvoiceLineRequest] = Field(..., min_length=1)
    due_date: datetime | None = None
    notes: str | None = None
    include_qr: bool = True


class InvoiceStatusRequest(BaseModel):
    status: InvoiceStatus
