"""Order, invoice and quote status transitions and the payment guard on completion."""

from decimal import Decimal

from restaurant_pos_service.exceptions import InvalidTransitionError, UnpaidOrderError
from restaurant_pos_service.models.invoice_models import DocumentKind, InvoiceStatus
from restaurant_pos_service.models.order_models import Order, OrderPayment, OrderStatus

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.OPEN: frozenset(
        {OrderStatus.PREPARING, OrderStatus.ON_HOLD, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PREPARING: frozenset(
        {OrderStatus.OPEN, OrderStatus.ON_HOLD, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.ON_HOLD: frozenset(
        {OrderStatus.OPEN, OrderStatus.PREPARING, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    # reopen
    OrderStatus.COMPLETED: frozenset({OrderStatus.OPEN}),
    OrderStatus.CANCELLED: frozenset(),
}

INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.CANCELLED}),
    InvoiceStatus.SENT: frozenset(
        {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
}

QUOTE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.CONVERTED}),
    InvoiceStatus.SENT: frozenset(
        {
            InvoiceStatus.ACCEPTED,
            InvoiceStatus.REJECTED,
            InvoiceStatus.EXPIRED,
            InvoiceStatus.CONVERTED,
        }
    ),
    InvoiceStatus.ACCEPTED: frozenset({InvoiceStatus.CONVERTED}),
    InvoiceStatus.REJECTED: frozenset(),
    InvoiceStatus.EXPIRED: frozenset(),
    InvoiceStatus.CONVERTED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


def validate_transition(current: OrderStatus, target: OrderStatus) -> None:
    """Raise ``InvalidTransitionError`` unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)


def validate_invoice_transition(
    current: InvoiceStatus, target: InvoiceStatus, kind: DocumentKind = DocumentKind.INVOICE
) -> None:
    """Raise ``InvalidTransitionError`` unless ``current -> target`` is allowed for ``kind``."""
    transitions = QUOTE_TRANSITIONS if kind is DocumentKind.QUOTE else INVOICE_TRANSITIONS
    if target not in transitions.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value)


def amount_paid(payments: list[OrderPayment]) -> Decimal:
    return sum((payment.amount for payment in payments), Decimal("0"))


def is_order_paid(order: Order, payments: list[OrderPayment]) -> bool:
    """Whether an order may be completed.

    An order is paid when staff explicitly marked it paid, or when its
    recorded payments cover the total.
    """
    if order.paid:
        return True
    return amount_paid(payments) >= order.total


def ensure_can_complete(order: Order, payments: list[OrderPayment]) -> None:
    """Validate a transition into ``completed``.

    Raises:
        InvalidTransitionError: If the order cannot move to completed from its status
        UnpaidOrderError: If the order is not paid
    """
    validate_transition(order.status, OrderStatus.COMPLETED)
    if not is_order_paid(order, payments):
        raise UnpaidOrderError(order.id, order.total, amount_paid(payments))
