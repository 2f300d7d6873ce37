"""VAT arithmetic for exclusive and inclusive pricing.

All functions work on ``Decimal`` at full precision. Nothing here rounds;
call ``round_money`` only when a value is about to be displayed or printed,
so rounding error does not compound across many lines.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from restaurant_pos_service.models.order_models import PricingMode

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


class PricedLine(Protocol):
    unit_price: Decimal
    quantity: int


@dataclass(frozen=True)
class VATCalculation:
    """Totals for a set of lines.

    Attributes:
        subtotal: Amount before VAT
        vat_amount: VAT portion
        total: Amount including VAT
    """

    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    """Split of a single price into base and VAT."""

    base_price: Decimal
    vat_amount: Decimal
    total_price: Decimal


def _as_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_vat_exclusive(subtotal: Decimal, vat_rate: Decimal) -> VATCalculation:
    """Add VAT on top of a pre-tax subtotal.

    Args:
        subtotal: Amount before VAT
        vat_rate: VAT rate as a percentage (15 for 15%)

    Returns:
        VATCalculation with the VAT added
    """
    subtotal = _as_decimal(subtotal)
    vat_amount = subtotal * _as_decimal(vat_rate) / HUNDRED
    return VATCalculation(subtotal=subtotal, vat_amount=vat_amount, total=subtotal + vat_amount)


def calculate_vat_inclusive(total: Decimal, vat_rate: Decimal) -> VATCalculation:
    """Extract the VAT already contained in a total.

    Args:
        total: Amount including VAT
        vat_rate: VAT rate as a percentage

    Returns:
        VATCalculation whose subtotal and VAT sum back to ``total``
    """
    total = _as_decimal(total)
    rate = _as_decimal(vat_rate)
    vat_amount = total * rate / (HUNDRED + rate)
    return VATCalculation(subtotal=total - vat_amount, vat_amount=vat_amount, total=total)


def calculate_from_price(
    price: Decimal, vat_rate: Decimal, is_inclusive: bool
) -> PriceBreakdown:
    """Split a single price into base price and VAT.

    Args:
        price: Price as entered (inclusive or exclusive per ``is_inclusive``)
        vat_rate: VAT rate as a percentage
        is_inclusive: Whether ``price`` already includes VAT

    Returns:
        PriceBreakdown for the price
    """
    if is_inclusive:
        calc = calculate_vat_inclusive(price, vat_rate)
    else:
        calc = calculate_vat_exclusive(price, vat_rate)
    return PriceBreakdown(
        base_price=calc.subtotal, vat_amount=calc.vat_amount, total_price=calc.total
    )


def line_sum(lines: Iterable[PricedLine]) -> Decimal:
    """Sum of ``unit_price * quantity`` with no per-line rounding."""
    return sum(
        (_as_decimal(line.unit_price) * line.quantity for line in lines), Decimal("0")
    )


def calculate_cart_totals(
    lines: Iterable[PricedLine], vat_rate: Decimal, pricing_mode: PricingMode
) -> VATCalculation:
    """Compute subtotal, VAT and total for a set of lines.

    In exclusive mode the line sum is the subtotal; in inclusive mode it is
    the total and VAT is extracted from it.
    """
    amount = line_sum(lines)
    if pricing_mode is PricingMode.INCLUSIVE:
        return calculate_vat_inclusive(amount, vat_rate)
    return calculate_vat_exclusive(amount, vat_rate)


def round_money(value: Decimal) -> Decimal:
    """Round half-up to two decimal places for display."""
    return _as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"{round_money(value):.2f}"


def format_vat_price(amount: Decimal, is_inclusive: bool, currency: str = "SAR") -> str:
    """Format an amount with its currency, starred when VAT is included."""
    formatted = f"{currency} {format_money(amount)}"
    return f"{formatted} *" if is_inclusive else formatted


def vat_indication_text(is_inclusive: bool) -> str:
    return "* Prices include VAT" if is_inclusive else "+ VAT will be added"
