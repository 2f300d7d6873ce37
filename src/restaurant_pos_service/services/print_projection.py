"""Flat, pre-formatted projections of orders and invoices for print templates.

All money is rendered with two decimals; the templating collaborator only
substitutes strings and loops over ``items`` and ``payments``.
"""

from decimal import Decimal
from typing import Any

from restaurant_pos_service.models.invoice_models import Invoice
from restaurant_pos_service.models.order_models import Order, OrderItem, OrderPayment, PricingMode
from restaurant_pos_service.models.settings_models import StoreSettings
from restaurant_pos_service.pricing.vat_calculator import format_money, vat_indication_text
from restaurant_pos_service.services.zatca_qr import (
    generate_qr_string,
    invoice_qr_data,
    receipt_qr_data,
)


def _format_rate(rate: Decimal) -> str:
    return f"{rate.normalize():f}"


def project_items(items: list[OrderItem]) -> list[dict[str, Any]]:
    return [
        {
            "index": index,
            "name": item.name,
            "description": item.description or "",
            "notes": item.notes or "",
            "quantity": item.quantity,
            "unit_price": format_money(item.unit_price),
            "line_total": format_money(item.total),
        }
        for index, item in enumerate(items, start=1)
    ]


def project_payments(payments: list[OrderPayment]) -> list[dict[str, Any]]:
    return [
        {
            "payment_type": payment.payment_method,
            "amount": format_money(payment.amount),
            "reference": payment.reference or "",
            "date": f"{payment.payment_date:%Y-%m-%d %H:%M}",
        }
        for payment in payments
    ]


def _organization(settings: StoreSettings) -> dict[str, Any]:
    return {
        "company_name": settings.organization_name,
        "company_vat": settings.organization_vat_number,
        "currency": settings.currency,
    }


def project_order(
    order: Order, payments: list[OrderPayment], settings: StoreSettings
) -> dict[str, Any]:
    """Receipt data for an order.

    Args:
        order: Order to print
        payments: Payments recorded against the order
        settings: Store settings of the order's organization

    Returns:
        Flat dict of strings plus ``items`` and ``payments`` lists
    """
    inclusive = order.pricing_mode is PricingMode.INCLUSIVE
    data = {
        **_organization(settings),
        "order_number": order.order_number,
        "order_date": f"{order.created_at:%Y-%m-%d}",
        "formatted_date": f"{order.created_at:%Y-%m-%d %H:%M}",
        "order_type": order.order_type,
        "status": order.status.value,
        "table_name": order.table_name or "",
        "customer_name": order.customer_name or "",
        "customer_phone": order.customer_phone or "",
        "created_by_name": order.created_by_name,
        "payment_method": payments[0].payment_method if payments else "",
        "subtotal": format_money(order.subtotal),
        "vat_rate": _format_rate(order.tax_rate),
        "vat_amount": format_money(order.tax_amount),
        "total": format_money(order.total),
        "amount_paid": format_money(order.amount_paid),
        "vat_note": vat_indication_text(inclusive),
        "total_quantity": sum(item.quantity for item in order.items),
        "items": project_items(order.items),
        "payments": project_payments(payments),
        "notes": order.notes or "",
        "include_qr": order.include_qr,
        "qr_code": "",
    }
    if order.include_qr:
        data["qr_code"] = generate_qr_string(receipt_qr_data(order, settings))
    return data


def project_invoice(
    invoice: Invoice, payments: list[OrderPayment], settings: StoreSettings
) -> dict[str, Any]:
    """Print data for an invoice or quote."""
    inclusive = invoice.pricing_mode is PricingMode.INCLUSIVE
    balance = invoice.total - invoice.amount_paid
    data = {
        **_organization(settings),
        "document_type": invoice.kind.value,
        "invoice_number": invoice.invoice_number,
        "invoice_date": f"{invoice.created_at:%Y-%m-%d}",
        "due_date": f"{invoice.due_date:%Y-%m-%d}",
        "status": invoice.status.value,
        "client_name": invoice.client_name,
        "client_email": invoice.client_email or "",
        "client_address": invoice.client_address or "",
        "client_vat": invoice.client_vat or "",
        "subtotal": format_money(invoice.subtotal),
        "vat_rate": _format_rate(invoice.tax_rate),
        "vat_amount": format_money(invoice.tax_amount),
        "total": format_money(invoice.total),
        "amount_paid": format_money(invoice.amount_paid),
        "balance_due": format_money(max(balance, Decimal("0"))),
        "vat_note": vat_indication_text(inclusive),
        "items": project_items(invoice.items),
        "payments": project_payments(payments),
        "notes": invoice.notes or "",
        "include_qr": invoice.include_qr,
        "qr_code": "",
    }
    if invoice.include_qr:
        data["qr_code"] = generate_qr_string(invoice_qr_data(invoice, settings))
    return data
