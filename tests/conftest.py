"""Shared pytest fixtures and configuration for all tests."""

import os
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

# main.py and lambda_handler.py skip app creation at import in test mode
os.environ.setdefault("ENVIRONMENT", "test")

from restaurant_pos_service.models.catalog_models import (  # noqa: E402
    Category,
    ItemType,
    Product,
    Service,
)
from restaurant_pos_service.models.order_models import (  # noqa: E402
    Order,
    OrderItem,
    OrderPayment,
    OrderStatus,
    Table,
)
from restaurant_pos_service.models.settings_models import StoreSettings  # noqa: E402


@pytest.fixture
def organization_id() -> str:
    """Fixture providing a standard test organization ID."""
    return "org_123456"


@pytest.fixture
def created_at() -> datetime:
    return datetime(2024, 1, 15, 10, 30, 0, tzinfo=UTC)


@pytest.fixture
def burger(organization_id: str) -> Product:
    """Fixture providing a product priced at 25.00."""
    return Product(
        id="prod_burger",
        organization_id=organization_id,
        name="Cheeseburger",
        price=Decimal("25.00"),
        category_id="cat_food",
    )


@pytest.fixture
def delivery(organization_id: str) -> Service:
    return Service(
        id="svc_delivery",
        organization_id=organization_id,
        name="Delivery",
        price=Decimal("10.00"),
        category_id="cat_food",
    )


@pytest.fixture
def settings(organization_id: str) -> StoreSettings:
    """Store settings with 15% VAT added on top of prices."""
    return StoreSettings(
        organization_id=organization_id,
        organization_name="Test Restaurant",
        organization_vat_number="300000000000003",
    )


@pytest.fixture
def table(organization_id: str) -> Table:
    return Table(id="tbl_1", organization_id=organization_id, name="T1", capacity=4)


def _make_order(organization_id: str, **overrides: Any) -> Order:
    data: dict[str, Any] = {
        "id": "ord_1",
        "organization_id": organization_id,
        "order_number": "ORD-20240115103000-ABCD",
        "items": [
            OrderItem(
                id="product-prod_burger",
                type=ItemType.PRODUCT,
                item_id="prod_burger",
                name="Cheeseburger",
                unit_price=Decimal("100.00"),
                quantity=1,
            )
        ],
        "subtotal": Decimal("100.00"),
        "total": Decimal("100.00"),
        "status": OrderStatus.OPEN,
        "table_id": "tbl_1",
        "table_name": "T1",
    }
    data.update(overrides)
    return Order(**data)


def _make_payment(organization_id: str, amount: str, payment_id: str = "pay_1") -> OrderPayment:
    return OrderPayment(
        id=payment_id,
        organization_id=organization_id,
        order_id="ord_1",
        amount=Decimal(amount),
        payment_method="cash",
    )


@pytest.fixture
def make_order(organization_id: str) -> Callable[..., Order]:
    """Factory for an open order of one line, total 100.00, seated at table tbl_1."""
    return lambda **overrides: _make_order(organization_id, **overrides)


@pytest.fixture
def make_payment(organization_id: str) -> Callable[..., OrderPayment]:
    """Factory for a cash payment on order ord_1."""
    return lambda amount, payment_id="pay_1": _make_payment(organization_id, amount, payment_id)


@pytest.fixture
def categories(organization_id: str) -> list[Category]:
    """Food > Burgers > Specials, plus Drinks as a second root."""
    return [
        Category(id="cat_food", organization_id=organization_id, name="Food"),
        Category(
            id="cat_burgers", organization_id=organization_id, name="Burgers", parent_id="cat_food"
        ),
        Category(
            id="cat_specials",
            organization_id=organization_id,
            name="Specials",
            parent_id="cat_burgers",
        ),
        Category(id="cat_drinks", organization_id=organization_id, name="Drinks", type="product"),
    ]
