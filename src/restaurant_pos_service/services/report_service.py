"""Sales reporting over orders."""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from restaurant_pos_service.models.order_models import Order, OrderStatus
from restaurant_pos_service.observability import traced
from restaurant_pos_service.pricing.vat_calculator import round_money
from restaurant_pos_service.repositories.order_repositories import (
    OrderRepository,
    PaymentRepository,
)

logger = logging.getLogger(__name__)

TOP_ITEMS_LIMIT = 4
ZERO = Decimal("0")


@dataclass
class ItemSales:
    name: str
    quantity: int = 0
    total: Decimal = ZERO


@dataclass
class SalesSummary:
    """Aggregated sales of an organization over a date range.

    Cancelled orders are excluded from every money figure but still appear
    in ``orders_by_status``.
    """

    start: datetime
    end: datetime
    total_orders: int = 0
    total_subtotal: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_sales: Decimal = ZERO
    average_order_value: Decimal = ZERO
    total_items_sold: int = 0
    sales_by_payment_type: dict[str, Decimal] = field(default_factory=dict)
    sales_by_order_type: dict[str, Decimal] = field(default_factory=dict)
    orders_by_status: dict[str, int] = field(default_factory=dict)
    top_selling_items: list[ItemSales] = field(default_factory=list)


class ReportService:
    def __init__(
        self, order_repository: OrderRepository, payment_repository: PaymentRepository
    ) -> None:
        self.order_repository = order_repository
        self.payment_repository = payment_repository

    @traced("report.sales_summary")
    async def sales_summary(
        self, organization_id: str, start: datetime, end: datetime
    ) -> SalesSummary:
        """Summarize orders created in ``[start, end)``.

        Args:
            organization_id: Organization to report on
            start: Inclusive lower bound of ``created_at``
            end: Exclusive upper bound of ``created_at``
        """
        in_range = [
            order
            for order in self.order_repository.list_for_organization(organization_id)
            if start <= order.created_at < end
        ]
        summary = SalesSummary(
            start=start,
            end=end,
            orders_by_status=dict(Counter(order.status.value for order in in_range)),
        )
        sales = [order for order in in_range if order.status is not OrderStatus.CANCELLED]
        if not sales:
            return summary

        summary.total_orders = len(sales)
        summary.total_subtotal = sum((o.subtotal for o in sales), ZERO)
        summary.total_tax = sum((o.tax_amount for o in sales), ZERO)
        summary.total_sales = sum((o.total for o in sales), ZERO)
        summary.average_order_value = round_money(summary.total_sales / len(sales))
        summary.sales_by_order_type = self._by_order_type(sales)
        summary.sales_by_payment_type = self._by_payment_type(organization_id, sales)

        items: dict[str, ItemSales] = {}
        for order in sales:
            for item in order.items:
                entry = items.setdefault(item.id, ItemSales(name=item.name))
                entry.quantity += item.quantity
                entry.total += item.total
        summary.total_items_sold = sum(entry.quantity for entry in items.values())
        summary.top_selling_items = sorted(
            items.values(), key=lambda entry: entry.total, reverse=True
        )[:TOP_ITEMS_LIMIT]

        logger.info(
            f"Sales summary for {organization_id}: {summary.total_orders} orders, "
            f"{summary.total_sales} total"
        )
        return summary

    @staticmethod
    def _by_order_type(orders: list[Order]) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for order in orders:
            totals[order.order_type] += order.total
        return dict(totals)

    def _by_payment_type(self, organization_id: str, orders: list[Order]) -> dict[str, Decimal]:
        order_ids = {order.id for order in orders}
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for payment in self.payment_repository.list_for_organization(organization_id):
            if payment.order_id in order_ids:
                totals[payment.payment_method] += payment.amount
        return dict(totals)
