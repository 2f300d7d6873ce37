"""Invoices and quotes: creation, status progression, payments, conversion."""

import logging
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from restaurant_pos_service.exceptions import (
    ConcurrentModificationError,
    InvalidPaymentError,
    InvalidTransitionError,
    NotFoundError,
)
from restaurant_pos_service.models.catalog_models import ItemType
from restaurant_pos_service.models.document_models import utc_now
from restaurant_pos_service.models.invoice_models import DocumentKind, Invoice, InvoiceStatus
from restaurant_pos_service.models.order_models import OrderItem, OrderPayment, line_id_for
from restaurant_pos_service.observability import traced
from restaurant_pos_service.observability.metrics import record_payment
from restaurant_pos_service.pricing.vat_calculator import calculate_cart_totals
from restaurant_pos_service.repositories.catalog_repositories import SettingsRepository
from restaurant_pos_service.repositories.invoice_repositories import InvoiceRepository
from restaurant_pos_service.repositories.order_repositories import PaymentRepository
from restaurant_pos_service.services.catalog_service import new_id
from restaurant_pos_service.services.live_query import LiveQueryCache
from restaurant_pos_service.services.order_state_machine import validate_invoice_transition

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_TERMS_DAYS = 30
NUMBER_PREFIXES = {DocumentKind.INVOICE: "INV", DocumentKind.QUOTE: "QUO"}
PAYABLE_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.OVERDUE})


def generate_invoice_number(kind: DocumentKind, now: datetime | None = None) -> str:
    now = now or utc_now()
    return f"{NUMBER_PREFIXES[kind]}-{now:%Y%m%d}-{uuid.uuid4().hex[:4].upper()}"


def build_line(data: dict[str, Any]) -> OrderItem:
    """Invoice line from request data; lines of the same item are not merged."""
    item_type = ItemType(data.get("type", ItemType.PRODUCT))
    item_id = data.get("item_id") or uuid.uuid4().hex[:8]
    return OrderItem(
        id=data.get("id") or f"{line_id_for(item_type, item_id)}-{uuid.uuid4().hex[:4]}",
        type=item_type,
        item_id=item_id,
        name=data["name"],
        description=data.get("description"),
        unit_price=Decimal(str(data["unit_price"])),
        quantity=int(data.get("quantity", 1)),
        notes=data.get("notes"),
    )


class InvoiceService:
    """Service for sales invoices and quotes.

    Statuses progress draft -> sent -> paid or overdue, overdue -> paid, and
    any unpaid status may be cancelled. An invoice moves to paid on its own
    once recorded payments cover the total. Quotes progress draft -> sent ->
    accepted, rejected or expired, and draft, sent or accepted quotes may be
    converted into an invoice once.
    """

    def __init__(
        self,
        invoice_repository: InvoiceRepository,
        payment_repository: PaymentRepository,
        settings_repository: SettingsRepository,
        live_queries: LiveQueryCache | None = None,
    ) -> None:
        self.invoice_repository = invoice_repository
        self.payment_repository = payment_repository
        self.settings_repository = settings_repository
        self.live_queries = live_queries

    def _changed(self, organization_id: str) -> None:
        if self.live_queries is not None:
            self.live_queries.notify(organization_id, Invoice.collection)

    @traced("invoice.create")
    async def create_document(
        self,
        organization_id: str,
        kind: DocumentKind,
        client_name: str,
        items: list[dict[str, Any]],
        due_date: datetime | None = None,
        client_email: str | None = None,
        client_address: str | None = None,
        client_vat: str | None = None,
        customer_id: str | None = None,
        notes: str | None = None,
        include_qr: bool = True,
    ) -> Invoice:
        """Create a draft invoice or quote with totals from the store's VAT settings.

        Args:
            organization_id: Owning organization
            kind: Invoice or quote
            client_name: Billed client
            items: Line data with name, unit_price, quantity and optional type/item_id
            due_date: Payment due date, defaults to 30 days from now

        Returns:
            The created draft document
        """
        settings = self.settings_repository.get_settings(organization_id)
        lines = [build_line(item) for item in items]
        totals = calculate_cart_totals(lines, settings.effective_vat_rate, settings.pricing_mode)

        document = Invoice(
            id=new_id("inv" if kind is DocumentKind.INVOICE else "quo"),
            organization_id=organization_id,
            kind=kind,
            invoice_number=generate_invoice_number(kind),
            client_name=client_name,
            client_email=client_email,
            client_address=client_address,
            client_vat=client_vat,
            customer_id=customer_id,
            items=lines,
            subtotal=totals.subtotal,
            tax_rate=settings.effective_vat_rate,
            tax_amount=totals.vat_amount,
            total=totals.total,
            pricing_mode=settings.pricing_mode,
            due_date=due_date or utc_now() + timedelta(days=DEFAULT_PAYMENT_TERMS_DAYS),
            notes=notes,
            include_qr=include_qr,
        )
        self.invoice_repository.create(document)
        logger.info(f"Created {kind.value} {document.invoice_number} total {document.total}")
        self._changed(organization_id)
        return document

    async def list_documents(
        self,
        organization_id: str,
        kind: DocumentKind | None = None,
        status: InvoiceStatus | None = None,
    ) -> list[Invoice]:
        documents = self.invoice_repository.list_for_organization(organization_id)
        if kind is not None:
            documents = [d for d in documents if d.kind is kind]
        if status is not None:
            documents = [d for d in documents if d.status is status]
        return sorted(documents, key=lambda d: d.created_at, reverse=True)

    async def get_document(self, organization_id: str, invoice_id: str) -> Invoice:
        return self.invoice_repository.require(organization_id, invoice_id)

    @traced("invoice.update_status")
    async def update_status(
        self, organization_id: str, invoice_id: str, target: InvoiceStatus
    ) -> Invoice:
        """Move an invoice or quote along its status progression.

        A quote reaches ``converted`` only through ``convert_quote``.

        Raises:
            NotFoundError: If the invoice does not exist
            InvalidTransitionError: If the transition is not allowed
            ConcurrentModificationError: If the status changed since it was read
        """
        invoice = self.invoice_repository.require(organization_id, invoice_id)
        if target is InvoiceStatus.CONVERTED:
            raise InvalidTransitionError(invoice.status.value, target.value)
        validate_invoice_transition(invoice.status, target, invoice.kind)
        updated = self.invoice_repository.update_status(
            organization_id, invoice_id, invoice.status, target
        )
        self._changed(organization_id)
        return updated

    @traced("invoice.mark_overdue")
    async def mark_overdue_invoices(self, now: datetime | None = None) -> list[str]:
        """Move every sent invoice whose due date has passed to overdue.

        Runs across all organizations. An invoice that changed status since it
        was read is skipped.

        Returns:
            Ids of the invoices marked overdue
        """
        now = now or utc_now()
        marked: list[str] = []
        for invoice in self.invoice_repository.list_all():
            if invoice.kind is not DocumentKind.INVOICE:
                continue
            due_date = invoice.due_date
            if due_date.tzinfo is None:
                due_date = due_date.replace(tzinfo=UTC)
            if invoice.status is not InvoiceStatus.SENT or due_date >= now:
                continue
            try:
                self.invoice_repository.update_status(
                    invoice.organization_id, invoice.id, InvoiceStatus.SENT, InvoiceStatus.OVERDUE
                )
            except ConcurrentModificationError:
                logger.info(f"Invoice {invoice.invoice_number} changed status, not marking overdue")
                continue
            marked.append(invoice.id)
            self._changed(invoice.organization_id)

        logger.info(f"Marked {len(marked)} invoices overdue")
        return marked

    @traced("invoice.convert_quote")
    async def convert_quote(self, organization_id: str, quote_id: str) -> Invoice:
        """Create a new draft invoice from a quote's client and lines.

        The invoice is written and the quote marked converted in one
        transaction, so a quote yields at most one invoice.

        Raises:
            NotFoundError: If the quote does not exist or is not a quote
            InvalidTransitionError: If the quote was already converted, rejected or expired
            ConcurrentModificationError: If the quote changed while converting
        """
        quote = self.invoice_repository.require(organization_id, quote_id)
        if quote.kind is not DocumentKind.QUOTE:
            raise NotFoundError(DocumentKind.QUOTE.value, quote_id)
        validate_invoice_transition(quote.status, InvoiceStatus.CONVERTED, quote.kind)

        now = utc_now()
        invoice = quote.model_copy(
            update={
                "id": new_id("inv"),
                "kind": DocumentKind.INVOICE,
                "invoice_number": generate_invoice_number(DocumentKind.INVOICE, now),
                "status": InvoiceStatus.DRAFT,
                "amount_paid": Decimal("0"),
                "due_date": now + timedelta(days=DEFAULT_PAYMENT_TERMS_DAYS),
                "source_quote_id": quote.id,
                "converted_invoice_id": None,
                "created_at": now,
                "updated_at": now,
            }
        )
        self.invoice_repository.convert(quote, invoice)
        logger.info(f"Converted quote {quote.invoice_number} into invoice {invoice.invoice_number}")
        self._changed(organization_id)
        return invoice

    async def list_payments(self, organization_id: str, invoice_id: str) -> list[OrderPayment]:
        payments = self.payment_repository.list_for_parent(organization_id, invoice_id)
        return sorted(payments, key=lambda p: p.payment_date)

    @traced("invoice.add_payment")
    async def add_payment(
        self,
        organization_id: str,
        invoice_id: str,
        amount: Decimal,
        payment_method: str,
        reference: str | None = None,
        notes: str | None = None,
    ) -> OrderPayment:
        """Record a payment on a sent or overdue invoice.

        The invoice moves to paid when its payments cover the total.

        Raises:
            InvalidPaymentError: If the amount is not positive or the invoice cannot take payments
            NotFoundError: If the invoice does not exist
            ConcurrentModificationError: If the invoice left sent or overdue meanwhile
        """
        if amount <= 0:
            raise InvalidPaymentError(f"Payment amount must be positive, got {amount}")
        invoice = self.invoice_repository.require(organization_id, invoice_id)
        if invoice.kind is not DocumentKind.INVOICE or invoice.status not in PAYABLE_STATUSES:
            raise InvalidPaymentError(
                f"{invoice.kind.value.capitalize()} {invoice.invoice_number} is "
                f"{invoice.status.value} and cannot take payments"
            )

        payment = OrderPayment(
            id=new_id("pay"),
            organization_id=organization_id,
            invoice_id=invoice_id,
            amount=amount,
            payment_method=payment_method,
            reference=reference,
            notes=notes,
        )
        self.payment_repository.record(
            payment, Invoice.collection, parent_statuses=PAYABLE_STATUSES
        )
        record_payment(payment_method, float(amount))
        self._settle_if_paid(organization_id, invoice_id)
        self._changed(organization_id)
        return payment

    def _settle_if_paid(self, organization_id: str, invoice_id: str) -> None:
        """Move the invoice to paid once its stored running total covers it.

        Reads the invoice after the payment write so concurrent payments are
        counted. Losing the status race to another writer leaves the payment
        recorded and the invoice as that writer left it.
        """
        invoice = self.invoice_repository.require(organization_id, invoice_id)
        if invoice.status not in PAYABLE_STATUSES or invoice.amount_paid < invoice.total:
            return
        try:
            self.invoice_repository.update_status(
                organization_id, invoice_id, invoice.status, InvoiceStatus.PAID
            )
        except ConcurrentModificationError:
            logger.info(f"Invoice {invoice.invoice_number} changed status while settling")
            return
        logger.info(f"Invoice {invoice.invoice_number} fully paid")

    async def remove_payment(self, organization_id: str, invoice_id: str, payment_id: str) -> None:
        payment = self.payment_repository.get_for_parent(organization_id, invoice_id, payment_id)
        if payment is None:
            raise NotFoundError(OrderPayment.collection, payment_id)
        self.payment_repository.remove(payment, Invoice.collection)
        self._changed(organization_id)
