"""Unit tests for the cart engine."""

from decimal import Decimal

import pytest

from restaurant_pos_service.exceptions import ConfirmationRequiredError, NotFoundError
from restaurant_pos_service.models.catalog_models import Product, ProductVariation, Service
from restaurant_pos_service.models.order_models import PricingMode
from restaurant_pos_service.pricing.cart import Cart
from restaurant_pos_service.pricing.vat_calculator import round_money


@pytest.mark.unit
class TestCartAddItem:
    """Tests for Cart.add_item."""

    def test_adds_new_line(self, burger: Product) -> None:
        cart = Cart()

        line = cart.add_item(burger, quantity=2)

        assert line.id == "product-prod_burger"
        assert line.quantity == 2
        assert line.total == Decimal("50.00")
        assert len(cart) == 1

    def test_repeated_add_merges_quantities(self, burger: Product) -> None:
        cart = Cart()

        cart.add_item(burger, quantity=1)
        line = cart.add_item(burger, quantity=2)

        assert len(cart) == 1
        assert line.quantity == 3
        assert line.total == Decimal("75.00")

    def test_product_and_service_with_same_id_are_separate_lines(
        self, burger: Product, organization_id: str
    ) -> None:
        service = Service(
            id=burger.id, organization_id=organization_id, name="Wrap", price=Decimal("5")
        )
        cart = Cart()

        cart.add_item(burger)
        cart.add_item(service)

        assert len(cart) == 2

    def test_unit_price_override(self, burger: Product) -> None:
        cart = Cart()

        line = cart.add_item(burger, unit_price=Decimal("30.00"), notes="large")

        assert line.unit_price == Decimal("30.00")
        assert line.notes == "large"

    def test_same_entry_at_different_prices_keeps_both_lines(self, burger: Product) -> None:
        cart = Cart()

        cart.add_item(burger, unit_price=Decimal("10"))
        cart.add_item(burger, unit_price=Decimal("15"))

        totals = cart.compute_totals(Decimal("0"), PricingMode.EXCLUSIVE)
        assert len(cart) == 2
        assert totals.subtotal == Decimal("25")
        assert {line.unit_price for line in cart.items} == {Decimal("10"), Decimal("15")}

    def test_repeat_at_second_price_merges_into_that_line(self, burger: Product) -> None:
        cart = Cart()

        cart.add_item(burger, unit_price=Decimal("10"))
        cart.add_item(burger, unit_price=Decimal("15"))
        line = cart.add_item(burger, unit_price=Decimal("15"))

        assert len(cart) == 2
        assert line.quantity == 2
        assert line.unit_price == Decimal("15")

    def test_variations_are_separate_lines(self, burger: Product) -> None:
        single = ProductVariation(id="var_single", name="Single", price=Decimal("25.00"))
        double = ProductVariation(id="var_double", name="Double", price=Decimal("35.00"))
        cart = Cart()

        cart.add_item(burger, variation=single)
        line = cart.add_item(burger, variation=double)
        cart.add_item(burger, variation=double)

        assert len(cart) == 2
        assert line.id == "product-prod_burger-var_double"
        assert line.name == "Cheeseburger (Double)"
        assert line.variation_id == "var_double"
        assert cart.items[1].quantity == 2
        totals = cart.compute_totals(Decimal("0"), PricingMode.EXCLUSIVE)
        assert round_money(totals.subtotal) == Decimal("95.00")

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_rejects_non_positive_quantity(self, burger: Product, quantity: int) -> None:
        cart = Cart()

        with pytest.raises(ValueError):
            cart.add_item(burger, quantity=quantity)

        assert cart.is_empty


@pytest.mark.unit
class TestCartUpdates:
    """Tests for quantity updates and removal."""

    def test_update_quantity_sets_quantity(self, burger: Product) -> None:
        cart = Cart()
        cart.add_item(burger)

        line = cart.update_quantity("product-prod_burger", 4)

        assert line is not None
        assert line.quantity == 4

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_update_to_non_positive_removes_line(self, burger: Product, quantity: int) -> None:
        cart = Cart()
        cart.add_item(burger)

        result = cart.update_quantity("product-prod_burger", quantity)

        assert result is None
        assert cart.is_empty

    def test_update_unknown_line_raises_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            Cart().update_quantity("product-missing", 1)

    def test_remove_is_idempotent(self, burger: Product) -> None:
        cart = Cart()
        cart.add_item(burger)

        cart.remove_item("product-prod_burger")
        cart.remove_item("product-prod_burger")

        assert cart.is_empty


@pytest.mark.unit
class TestCartTotalsAndClear:
    """Tests for totals and clearing."""

    def test_compute_totals_exclusive(self, burger: Product) -> None:
        cart = Cart()
        cart.add_item(burger)

        totals = cart.compute_totals(Decimal("15"), PricingMode.EXCLUSIVE)

        assert round_money(totals.subtotal) == Decimal("25.00")
        assert round_money(totals.vat_amount) == Decimal("3.75")
        assert round_money(totals.total) == Decimal("28.75")

    def test_clear_requires_confirmation(self, burger: Product) -> None:
        cart = Cart()
        cart.add_item(burger)

        with pytest.raises(ConfirmationRequiredError):
            cart.clear()

        assert len(cart) == 1

    def test_clear_with_confirmation_empties_cart(self, burger: Product) -> None:
        cart = Cart()
        cart.add_item(burger)

        cart.clear(confirmed=True)

        assert cart.is_empty
