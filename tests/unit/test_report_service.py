"""Unit tests for the sales report."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from restaurant_pos_service.models.order_models import Order, OrderPayment, OrderStatus
from restaurant_pos_service.services.report_service import ReportService

START = datetime(2024, 1, 15, tzinfo=UTC)
END = START + timedelta(days=1)


@pytest.fixture
def repositories() -> tuple[MagicMock, MagicMock]:
    payment_repository = MagicMock()
    payment_repository.list_for_organization.return_value = []
    return MagicMock(), payment_repository


@pytest.mark.unit
class TestSalesSummary:
    """Tests for ReportService.sales_summary."""

    @pytest.mark.asyncio
    async def test_cancelled_orders_excluded_from_money(
        self,
        repositories: tuple[MagicMock, MagicMock],
        make_order: Callable[..., Order],
        make_payment: Callable[..., OrderPayment],
        organization_id: str,
    ) -> None:
        order_repository, payment_repository = repositories
        order_repository.list_for_organization.return_value = [
            make_order(id="ord_1", created_at=START + timedelta(hours=1), total=Decimal("100")),
            make_order(
                id="ord_2",
                created_at=START + timedelta(hours=2),
                total=Decimal("50"),
                order_type="take-away",
                status=OrderStatus.COMPLETED,
            ),
            make_order(
                id="ord_3",
                created_at=START + timedelta(hours=3),
                status=OrderStatus.CANCELLED,
            ),
        ]
        payment_repository.list_for_organization.return_value = [make_payment("100")]

        summary = await ReportService(order_repository, payment_repository).sales_summary(
            organization_id, START, END
        )

        assert summary.total_orders == 2
        assert summary.total_sales == Decimal("150")
        assert summary.average_order_value == Decimal("75.00")
        assert summary.orders_by_status == {"open": 1, "completed": 1, "cancelled": 1}
        assert summary.sales_by_order_type == {
            "dine-in": Decimal("100"),
            "take-away": Decimal("50"),
        }
        assert summary.sales_by_payment_type == {"cash": Decimal("100")}
        assert summary.total_items_sold == 2
        assert summary.top_selling_items[0].name == "Cheeseburger"

    @pytest.mark.asyncio
    async def test_range_excludes_end(
        self,
        repositories: tuple[MagicMock, MagicMock],
        make_order: Callable[..., Order],
        organization_id: str,
    ) -> None:
        order_repository, payment_repository = repositories
        order_repository.list_for_organization.return_value = [
            make_order(id="ord_start", created_at=START),
            make_order(id="ord_end", created_at=END),
        ]

        summary = await ReportService(order_repository, payment_repository).sales_summary(
            organization_id, START, END
        )

        assert summary.total_orders == 1

    @pytest.mark.asyncio
    async def test_empty_range(
        self, repositories: tuple[MagicMock, MagicMock], organization_id: str
    ) -> None:
        order_repository, payment_repository = repositories
        order_repository.list_for_organization.return_value = []

        summary = await ReportService(order_repository, payment_repository).sales_summary(
            organization_id, START, END
        )

        assert summary.total_orders == 0
        assert summary.total_sales == Decimal("0")
        assert summary.top_selling_items == []
