"""Invoice and quote models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import Field

from restaurant_pos_service.models.document_models import DocumentModel
from restaurant_pos_service.models.order_models import OrderItem, PricingMode


class DocumentKind(str, Enum):
    """Billing document kind."""

    INVOICE = "invoice"
    QUOTE = "quote"


class InvoiceStatus(str, Enum):
    """Enumeration of invoice and quote status values.

    Invoices use draft, sent, paid, overdue and cancelled. Quotes use draft,
    sent, accepted, rejected, expired and converted.
    """

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"


class Invoice(DocumentModel):
    """Sales invoice or quote sent to a client.

    Quotes share the invoice shape. Converting a quote produces a new draft
    invoice with the same lines and marks the quote converted, once.
    """

    collection = "invoices"

    kind: DocumentKind = DocumentKind.INVOICE
    invoice_number: str
    client_name: str = Field(..., min_length=1)
    client_email: str | None = None
    client_address: str | None = None
    client_vat: str | None = None
    customer_id: str | None = None
    items: list[OrderItem] = Field(default_factory=list)
    subtotal: Decimal = Field(default=Decimal("0"))
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0)
    tax_amount: Decimal = Field(default=Decimal("0"))
    total: Decimal = Field(default=Decimal("0"))
    pricing_mode: PricingMode = PricingMode.EXCLUSIVE
    status: InvoiceStatus = InvoiceStatus.DRAFT
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)
    due_date: datetime
    notes: str | None = None
    include_qr: bool = True
    source_quote_id: str | None = None
    converted_invoice_id: str | None = None
