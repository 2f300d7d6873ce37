"""Unit tests for VAT arithmetic."""

from decimal import Decimal

import pytest

from restaurant_pos_service.models.catalog_models import ItemType
from restaurant_pos_service.models.order_models import CartItem, PricingMode
from restaurant_pos_service.pricing.vat_calculator import (
    calculate_cart_totals,
    calculate_from_price,
    calculate_vat_exclusive,
    calculate_vat_inclusive,
    format_money,
    format_vat_price,
    round_money,
    vat_indication_text,
)

RATE = Decimal("15")


def line(price: str, quantity: int) -> CartItem:
    return CartItem(
        id=f"product-{price}",
        type=ItemType.PRODUCT,
        item_id=price,
        name="Item",
        unit_price=Decimal(price),
        quantity=quantity,
    )


@pytest.mark.unit
class TestVatExclusive:
    """Tests for VAT added on top of prices."""

    def test_adds_vat_to_subtotal(self) -> None:
        result = calculate_vat_exclusive(Decimal("25.00"), RATE)

        assert round_money(result.subtotal) == Decimal("25.00")
        assert round_money(result.vat_amount) == Decimal("3.75")
        assert round_money(result.total) == Decimal("28.75")

    def test_zero_rate_leaves_amount_unchanged(self) -> None:
        result = calculate_vat_exclusive(Decimal("40"), Decimal("0"))

        assert result.vat_amount == 0
        assert result.total == Decimal("40")


@pytest.mark.unit
class TestVatInclusive:
    """Tests for VAT extracted from prices that already include it."""

    def test_extracts_vat_from_total(self) -> None:
        result = calculate_vat_inclusive(Decimal("28.75"), RATE)

        assert round_money(result.vat_amount) == Decimal("3.75")
        assert round_money(result.subtotal) == Decimal("25.00")
        assert result.total == Decimal("28.75")

    def test_subtotal_and_vat_sum_to_total(self) -> None:
        result = calculate_vat_inclusive(Decimal("19.99"), RATE)

        assert result.subtotal + result.vat_amount == result.total


@pytest.mark.unit
class TestCalculateFromPrice:
    """Tests for splitting a single price."""

    @pytest.mark.parametrize("price", ["25.00", "9.99", "0.01", "1234.56"])
    def test_inclusive_then_exclusive_returns_original_price(self, price: str) -> None:
        inclusive = calculate_from_price(Decimal(price), RATE, is_inclusive=True)
        exclusive = calculate_from_price(inclusive.base_price, RATE, is_inclusive=False)

        assert round_money(exclusive.total_price) == Decimal(price)

    def test_exclusive_price_is_base(self) -> None:
        result = calculate_from_price(Decimal("100"), RATE, is_inclusive=False)

        assert result.base_price == Decimal("100")
        assert result.total_price == Decimal("115")


@pytest.mark.unit
class TestCartTotals:
    """Tests for totals over several lines."""

    def test_exclusive_mode_uses_line_sum_as_subtotal(self) -> None:
        lines = [line("10.00", 2), line("5.00", 1)]
        totals = calculate_cart_totals(lines, RATE, PricingMode.EXCLUSIVE)

        assert totals.subtotal == Decimal("25.00")
        assert round_money(totals.vat_amount) == Decimal("3.75")
        assert round_money(totals.total) == Decimal("28.75")

    def test_inclusive_mode_uses_line_sum_as_total(self) -> None:
        totals = calculate_cart_totals([line("28.75", 1)], RATE, PricingMode.INCLUSIVE)

        assert totals.total == Decimal("28.75")
        assert round_money(totals.subtotal) == Decimal("25.00")

    def test_lines_are_not_rounded_individually(self) -> None:
        # 3 x 0.333 = 0.999, rounding each line first would give 0.99
        totals = calculate_cart_totals([line("0.333", 3)], Decimal("0"), PricingMode.EXCLUSIVE)

        assert totals.subtotal == Decimal("0.999")
        assert format_money(totals.subtotal) == "1.00"

    def test_empty_cart_is_zero(self) -> None:
        totals = calculate_cart_totals([], RATE, PricingMode.EXCLUSIVE)

        assert totals.total == 0


@pytest.mark.unit
class TestFormatting:
    """Tests for presentation helpers."""

    def test_round_money_rounds_half_up(self) -> None:
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")

    def test_format_vat_price_marks_inclusive_prices(self) -> None:
        assert format_vat_price(Decimal("28.75"), is_inclusive=True) == "SAR 28.75 *"
        assert format_vat_price(Decimal("25"), is_inclusive=False, currency="USD") == "USD 25.00"

    def test_vat_indication_text(self) -> None:
        assert vat_indication_text(True) == "* Prices include VAT"
        assert vat_indication_text(False) == "+ VAT will be added"
