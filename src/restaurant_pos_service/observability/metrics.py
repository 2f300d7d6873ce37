"""Custom metrics for the POS service."""

from opentelemetry import metrics

meter = metrics.get_meter("pos-svc")

checkout_counter = meter.create_counter(
    name="pos_checkout_total",
    description="Orders created at checkout by order type",
    unit="1",
)

checkout_rejected_counter = meter.create_counter(
    name="pos_checkout_rejected_total",
    description="Checkouts refused by validation, by reason",
    unit="1",
)

order_completed_counter = meter.create_counter(
    name="pos_order_completed_total",
    description="Orders moved to completed",
    unit="1",
)

completion_refused_counter = meter.create_counter(
    name="pos_completion_refused_total",
    description="Completions refused because the order was unpaid or changed concurrently",
    unit="1",
)

payment_amount_histogram = meter.create_histogram(
    name="pos_payment_amount",
    description="Amounts of recorded payments by payment method",
    unit="1",
)

live_query_subscribers = meter.create_up_down_counter(
    name="pos_live_query_subscribers",
    description="Open live query subscriptions",
    unit="1",
)


def record_checkout(order_type: str, item_count: int) -> None:  # noqa: ARG001
    """Record a successful checkout.

    Args:
        order_type: dine-in, take-away, delivery...
        item_count: Number of lines in the order
    """
    checkout_counter.add(1, {"order_type": order_type})


def record_checkout_rejected(reason: str) -> None:
    checkout_rejected_counter.add(1, {"reason": reason})


def record_order_completed(released_table: bool) -> None:
    order_completed_counter.add(1, {"released_table": released_table})


def record_completion_refused(reason: str) -> None:
    """Record a refused completion.

    Args:
        reason: ``unpaid`` or ``conflict``
    """
    completion_refused_counter.add(1, {"reason": reason})


def record_payment(payment_method: str, amount: float) -> None:
    payment_amount_histogram.record(amount, {"payment_method": payment_method})


def record_subscription_change(change: int, collection: str) -> None:
    """Record a live query subscription being opened (+1) or closed (-1)."""
    live_query_subscribers.add(change, {"collection": collection})
