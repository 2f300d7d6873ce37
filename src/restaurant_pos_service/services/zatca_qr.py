"""ZATCA e-invoicing QR payload.

The payload is a sequence of TLV records, each encoded as two hex digits of
tag, two hex digits of UTF-8 byte length and the hex of the value, all
uppercase. Empty values are left out.
"""

import logging
from dataclasses import dataclass, fields

from restaurant_pos_service.models.invoice_models import Invoice
from restaurant_pos_service.models.order_models import Order
from restaurant_pos_service.models.settings_models import StoreSettings
from restaurant_pos_service.pricing.vat_calculator import format_money

logger = logging.getLogger(__name__)

WALK_IN_CUSTOMER = "Walk-in Customer"
MAX_VALUE_BYTES = 255


@dataclass(frozen=True)
class ZatcaQRData:
    """Fields of the QR payload in tag order (tags 1 to 9)."""

    seller_name: str
    seller_vat_number: str
    invoice_date: str
    invoice_time: str
    total_amount: str
    vat_amount: str
    invoice_number: str = ""
    buyer_name: str = ""
    buyer_vat_number: str = ""


def encode_tlv(tag: int, value: str) -> str:
    """Encode one TLV record.

    A value longer than 255 bytes is cut at the last whole character that
    fits, since the length field is a single byte.
    """
    data = value.encode("utf-8")
    if len(data) > MAX_VALUE_BYTES:
        data = data[:MAX_VALUE_BYTES].decode("utf-8", errors="ignore").encode("utf-8")
        logger.warning(f"TLV value for tag {tag} truncated to {len(data)} bytes")
    return f"{tag:02X}{len(data):02X}{data.hex().upper()}"


def generate_qr_string(data: ZatcaQRData) -> str:
    records = []
    for tag, field in enumerate(fields(data), start=1):
        value = getattr(data, field.name)
        if value:
            records.append(encode_tlv(tag, value))
    return "".join(records)


def receipt_qr_data(order: Order, settings: StoreSettings) -> ZatcaQRData:
    """QR data for a POS receipt; anonymous buyers print as a walk-in customer."""
    return ZatcaQRData(
        seller_name=settings.organization_name,
        seller_vat_number=settings.organization_vat_number,
        invoice_date=f"{order.created_at:%Y-%m-%d}",
        invoice_time=f"{order.created_at:%H:%M:%S}",
        total_amount=format_money(order.total),
        vat_amount=format_money(order.tax_amount),
        invoice_number=order.order_number,
        buyer_name=order.customer_name or WALK_IN_CUSTOMER,
    )


def invoice_qr_data(invoice: Invoice, settings: StoreSettings) -> ZatcaQRData:
    return ZatcaQRData(
        seller_name=settings.organization_name,
        seller_vat_number=settings.organization_vat_number,
        invoice_date=f"{invoice.created_at:%Y-%m-%d}",
        invoice_time=f"{invoice.created_at:%H:%M:%S}",
        total_amount=format_money(invoice.total),
        vat_amount=format_money(invoice.tax_amount),
        invoice_number=invoice.invoice_number or invoice.id[-8:],
        buyer_name=invoice.client_name,
        buyer_vat_number=invoice.client_vat or "",
    )
