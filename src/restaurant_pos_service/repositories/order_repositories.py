"""Repositories for orders, payments and tables.

Writes that touch more than one document (checkout + occupy table, payment +
running total, completion + table release) run as a single DynamoDB
transaction so a crash between them cannot leave inconsistent state.
"""

import logging
from enum import Enum

from botocore.exceptions import ClientError

from restaurant_pos_service.exceptions import ConcurrentModificationError, NotFoundError
from restaurant_pos_service.models.document_models import SORT_KEY_SEPARATOR
from restaurant_pos_service.models.order_models import (
    Order,
    OrderPayment,
    OrderStatus,
    SavedCart,
    Table,
    TableStatus,
    cart_expiry,
)
from restaurant_pos_service.pricing.cart import Cart
from restaurant_pos_service.repositories.collection_repository import CollectionRepository
from restaurant_pos_service.repositories.document_store import (
    CANCELLED_CONDITION,
    UpdateBuilder,
    cancellation_codes,
    sort_key,
)

logger = logging.getLogger(__name__)


def _failed(codes: list[str], index: int) -> bool:
    return len(codes) > index and codes[index] == CANCELLED_CONDITION


class TableRepository(CollectionRepository[Table]):
    model = Table

    def set_status(self, organization_id: str, table_id: str, status: TableStatus) -> Table:
        return self.update(organization_id, table_id, {"status": status})


class PaymentRepository(CollectionRepository[OrderPayment]):
    """Payments stored under their parent order or invoice."""

    model = OrderPayment

    def list_for_parent(self, organization_id: str, parent_id: str) -> list[OrderPayment]:
        """All payments of one order or invoice."""
        prefix = SORT_KEY_SEPARATOR.join([self.collection, parent_id, ""])
        items = self.store.query_prefix(organization_id, prefix)
        return [OrderPayment.from_dynamodb_item(item) for item in items]

    def get_for_parent(
        self, organization_id: str, parent_id: str, payment_id: str
    ) -> OrderPayment | None:
        key = SORT_KEY_SEPARATOR.join([self.collection, parent_id, payment_id])
        item = self.store.get(organization_id, key)
        return OrderPayment.from_dynamodb_item(item) if item is not None else None

    def record(
        self,
        payment: OrderPayment,
        parent_collection: str,
        parent_statuses: frozenset[Enum] | None = None,
    ) -> OrderPayment:
        """Store a payment and add its amount to the parent's ``amount_paid``.

        Args:
            payment: Payment to store
            parent_collection: Collection of the order or invoice paid
            parent_statuses: When given, the parent must be in one of these
                statuses at write time

        Raises:
            NotFoundError: If the parent document does not exist
            ConcurrentModificationError: If the parent left ``parent_statuses``
                or the payment id is taken
        """
        builder = UpdateBuilder().add("amount_paid", payment.amount)
        condition = None
        if parent_statuses:
            placeholders = ", ".join(
                builder.value(f"status{index}", status)
                for index, status in enumerate(sorted(parent_statuses, key=lambda s: s.value))
            )
            condition = f"{builder.name('status')} IN ({placeholders})"
        actions = [
            self.store.put_action(payment),
            self.store.update_action(
                payment.organization_id,
                sort_key(parent_collection, payment.parent_id),
                builder,
                condition,
            ),
        ]
        try:
            self.store.transact(actions)
        except ClientError as e:
            codes = cancellation_codes(e)
            if _failed(codes, 1) and condition is None:
                raise NotFoundError(parent_collection, payment.parent_id) from e
            if _failed(codes, 1):
                raise ConcurrentModificationError(
                    f"{parent_collection} {payment.parent_id} changed while recording payment"
                ) from e
            raise ConcurrentModificationError(f"Payment {payment.id} already recorded") from e
        logger.info(
            f"Recorded payment {payment.id} of {payment.amount} on {parent_collection} "
            f"{payment.parent_id}"
        )
        return payment

    def remove(self, payment: OrderPayment, parent_collection: str) -> None:
        """Delete a payment and subtract its amount from the parent."""
        payment_key = payment.sort_key
        builder = UpdateBuilder().add("amount_paid", -payment.amount)
        actions = [
            self.store.delete_action(payment.organization_id, payment_key, must_exist=True),
            self.store.update_action(
                payment.organization_id, sort_key(parent_collection, payment.parent_id), builder
            ),
        ]
        try:
            self.store.transact(actions)
        except ClientError as e:
            raise NotFoundError(self.collection, payment.id) from e


class CartRepository(CollectionRepository[SavedCart]):
    """One cart document per staff member, keyed by user id."""

    model = SavedCart

    def load_cart(self, organization_id: str, user_id: str) -> Cart:
        """The user's cart, empty when none is stored or it has expired."""
        saved = self.get(organization_id, user_id)
        if saved is None or saved.is_expired():
            return Cart()
        return Cart(saved.items)

    def save_cart(self, organization_id: str, user_id: str, cart: Cart) -> None:
        """Store the cart and push its expiry forward; an empty cart is deleted."""
        if cart.is_empty:
            self.discard(organization_id, user_id)
            return
        self.save(
            SavedCart(
                id=user_id,
                organization_id=organization_id,
                items=cart.items,
                expires_at=cart_expiry(),
            )
        )

    def discard(self, organization_id: str, user_id: str) -> None:
        self.store.delete(organization_id, sort_key(self.collection, user_id))


class OrderRepository(CollectionRepository[Order]):
    """Orders with transactional status changes."""

    model = Order

    def create_with_table(self, order: Order, cart_owner: str | None = None) -> Order:
        """Persist a new order with its side effects in one transaction.

        The order's table, if any, moves to ``occupied`` and the cart of
        ``cart_owner``, if given, is deleted.

        Raises:
            NotFoundError: If the order references a table that does not exist
        """
        actions = [self.store.put_action(order)]
        if order.table_id:
            actions.append(
                self.store.update_action(
                    order.organization_id,
                    sort_key(Table.collection, order.table_id),
                    UpdateBuilder().set("status", TableStatus.OCCUPIED),
                )
            )
        if cart_owner:
            actions.append(
                self.store.delete_action(
                    order.organization_id, sort_key(SavedCart.collection, cart_owner)
                )
            )
        if len(actions) == 1:
            return self.create(order)

        try:
            self.store.transact(actions)
        except ClientError as e:
            if order.table_id and _failed(cancellation_codes(e), 1):
                raise NotFoundError(Table.collection, order.table_id) from e
            raise ConcurrentModificationError(f"Order {order.id} already exists") from e
        logger.info(f"Created order {order.order_number} at table {order.table_id}")
        return order

    def update_status(
        self,
        organization_id: str,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
    ) -> Order:
        """Change status only if it is still ``expected``.

        Raises:
            NotFoundError: If the order does not exist
            ConcurrentModificationError: If another session changed the status first
        """
        builder = UpdateBuilder().set("status", target)
        condition = f"{builder.name('status')} = {builder.value('expected', expected)}"
        item = self.store.update(
            organization_id, sort_key(self.collection, order_id), builder, condition
        )
        return Order.from_dynamodb_item(item)

    def complete(self, order: Order, release_table: bool) -> None:
        """Mark an order completed and release its table atomically.

        The write is conditional on the status still being ``order.status`` and
        on the order being paid (override flag set, or ``amount_paid`` covering
        ``total``), evaluated by DynamoDB at write time.

        Raises:
            ConcurrentModificationError: If the status or payment condition no longer holds
            NotFoundError: If the table to release no longer exists
        """
        builder = UpdateBuilder().set("status", OrderStatus.COMPLETED)
        status, paid = builder.name("status"), builder.name("paid")
        amount_paid, total = builder.name("amount_paid"), builder.name("total")
        condition = (
            f"{status} = {builder.value('expected', order.status)} AND "
            f"({paid} = {builder.value('paid', True)} OR {amount_paid} >= {total})"
        )
        actions = [
            self.store.update_action(
                order.organization_id, sort_key(self.collection, order.id), builder, condition
            )
        ]
        if release_table and order.table_id:
            actions.append(
                self.store.update_action(
                    order.organization_id,
                    sort_key(Table.collection, order.table_id),
                    UpdateBuilder().set("status", TableStatus.AVAILABLE),
                )
            )

        try:
            self.store.transact(actions)
        except ClientError as e:
            codes = cancellation_codes(e)
            if _failed(codes, 1) and order.table_id:
                raise NotFoundError(Table.collection, order.table_id) from e
            raise ConcurrentModificationError(
                f"Order {order.id} changed while completing"
            ) from e
        logger.info(f"Completed order {order.order_number}, table released: {bool(order.table_id)}")

    def cancel(self, order: Order, release_table: bool = True) -> None:
        """Mark an order cancelled and release its table atomically.

        Raises:
            ConcurrentModificationError: If the status changed since it was read
            NotFoundError: If the table to release no longer exists
        """
        builder = UpdateBuilder().set("status", OrderStatus.CANCELLED)
        condition = f"{builder.name('status')} = {builder.value('expected', order.status)}"
        actions = [
            self.store.update_action(
                order.organization_id, sort_key(self.collection, order.id), builder, condition
            )
        ]
        if release_table and order.table_id:
            actions.append(
                self.store.update_action(
                    order.organization_id,
                    sort_key(Table.collection, order.table_id),
                    UpdateBuilder().set("status", TableStatus.AVAILABLE),
                )
            )
        try:
            self.store.transact(actions)
        except ClientError as e:
            if len(actions) > 1 and _failed(cancellation_codes(e), 1):
                raise NotFoundError(Table.collection, order.table_id or "") from e
            raise ConcurrentModificationError(f"Order {order.id} changed while cancelling") from e
        logger.info(f"Cancelled order {order.order_number}")

    def mark_paid(self, organization_id: str, order_id: str) -> Order:
        item = self.store.update(
            organization_id,
            sort_key(self.collection, order_id),
            UpdateBuilder().set("paid", True),
        )
        return Order.from_dynamodb_item(item)

    def delete_with_payments(
        self, organization_id: str, order_id: str, payment_ids: list[str]
    ) -> None:
        """Delete an order and all of its payments in one transaction."""
        keys = [sort_key(self.collection, order_id)] + [
            SORT_KEY_SEPARATOR.join([OrderPayment.collection, order_id, pid]) for pid in payment_ids
        ]
        actions = [self.store.delete_action(organization_id, key) for key in keys]
        self.store.transact(actions)
        logger.info(f"Deleted order {order_id} with {len(payment_ids)} payments")
