"""In-progress cart for an order.

Repeated adds of the same product or service merge into one line keyed by
``(type, item_id, variation_id)`` as long as the unit price matches; a
different price for the same key opens a separate line. A line never holds a
zero or negative quantity: updating to zero removes it.
"""

from decimal import Decimal

from restaurant_pos_service.exceptions import ConfirmationRequiredError, NotFoundError
from restaurant_pos_service.models.catalog_models import CatalogEntry, ProductVariation
from restaurant_pos_service.models.order_models import CartItem, PricingMode, line_id_for
from restaurant_pos_service.pricing.vat_calculator import VATCalculation, calculate_cart_totals


class Cart:
    """Ordered collection of cart lines."""

    def __init__(self, items: list[CartItem] | None = None) -> None:
        self._items: dict[str, CartItem] = {}
        for item in items or []:
            self._items[item.id] = item

    @property
    def items(self) -> list[CartItem]:
        return list(self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def add_item(
        self,
        source: CatalogEntry,
        quantity: int = 1,
        unit_price: Decimal | None = None,
        notes: str | None = None,
        variation: ProductVariation | None = None,
    ) -> CartItem:
        """Add a catalog entry, merging with an existing line at the same price.

        Args:
            source: Product or service being sold
            quantity: Units to add, must be positive
            unit_price: Price override, defaults to the variation or source price
            notes: Free-text line note
            variation: Selected product variation, kept on its own line

        Returns:
            The new or updated cart line

        Raises:
            ValueError: If quantity is not positive
        """
        if quantity <= 0:
            raise ValueError("quantity must be positive")

        if unit_price is None:
            unit_price = variation.price if variation is not None else source.price
        variation_id = variation.id if variation is not None else None

        line_id = line_id_for(source.item_type, source.id, variation_id)
        existing = self._items.get(line_id)
        if existing is not None and existing.unit_price != unit_price:
            line_id = f"{line_id}@{unit_price}"
            existing = self._items.get(line_id)

        if existing is not None:
            updated = existing.model_copy(update={"quantity": existing.quantity + quantity})
            self._items[line_id] = updated
            return updated

        name = source.name if variation is None else f"{source.name} ({variation.name})"
        line = CartItem(
            id=line_id,
            type=source.item_type,
            item_id=source.id,
            variation_id=variation_id,
            name=name,
            description=source.description,
            unit_price=unit_price,
            quantity=quantity,
            notes=notes,
        )
        self._items[line_id] = line
        return line

    def remove_item(self, line_id: str) -> None:
        """Remove a line; unknown ids are ignored."""
        self._items.pop(line_id, None)

    def update_quantity(self, line_id: str, quantity: int) -> CartItem | None:
        """Set a line's quantity, removing the line when quantity <= 0.

        Returns:
            The updated line, or None if it was removed

        Raises:
            NotFoundError: If the line is not in the cart
        """
        if line_id not in self._items:
            raise NotFoundError("cart line", line_id)

        if quantity <= 0:
            del self._items[line_id]
            return None

        updated = self._items[line_id].model_copy(update={"quantity": quantity})
        self._items[line_id] = updated
        return updated

    def compute_totals(self, tax_rate: Decimal, pricing_mode: PricingMode) -> VATCalculation:
        return calculate_cart_totals(self._items.values(), tax_rate, pricing_mode)

    def clear(self, confirmed: bool = False) -> None:
        """Empty the cart.

        Raises:
            ConfirmationRequiredError: Unless ``confirmed`` is True
        """
        if not confirmed:
            raise ConfirmationRequiredError("Clearing the cart requires confirmation")
        self._items.clear()
