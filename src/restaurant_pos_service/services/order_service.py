"""Cart, checkout, order status and payment operations."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from restaurant_pos_service.auth.roles import SUPERVISOR_ROLES, UserRole, require_role
from restaurant_pos_service.exceptions import (
    ConcurrentModificationError,
    EmptyOrderError,
    InvalidPaymentError,
    MissingContextError,
    NotFoundError,
    UnpaidOrderError,
)
from restaurant_pos_service.models.catalog_models import ItemType
from restaurant_pos_service.models.document_models import utc_now
from restaurant_pos_service.models.order_models import (
    CartItem,
    Order,
    OrderPayment,
    OrderStatus,
    Table,
)
from restaurant_pos_service.observability import traced
from restaurant_pos_service.observability.metrics import (
    record_checkout,
    record_checkout_rejected,
    record_completion_refused,
    record_order_completed,
    record_payment,
)
from restaurant_pos_service.pricing.cart import Cart
from restaurant_pos_service.pricing.vat_calculator import VATCalculation
from restaurant_pos_service.repositories.catalog_repositories import (
    CustomerRepository,
    SettingsRepository,
)
from restaurant_pos_service.repositories.order_repositories import (
    CartRepository,
    OrderRepository,
    PaymentRepository,
    TableRepository,
)
from restaurant_pos_service.services.catalog_service import CatalogService, new_id
from restaurant_pos_service.services.live_query import LiveQueryCache
from restaurant_pos_service.services.order_state_machine import (
    ensure_can_complete,
    is_order_paid,
    validate_transition,
)

logger = logging.getLogger(__name__)

DINE_IN = "dine-in"


def generate_order_number(now: datetime | None = None) -> str:
    """Human readable order number, e.g. ``ORD-20240115093012-A1F3``."""
    now = now or utc_now()
    return f"ORD-{now:%Y%m%d%H%M%S}-{uuid.uuid4().hex[:4].upper()}"


@dataclass
class CartSummary:
    """Cart lines with their totals under the organization's VAT settings.

    Attributes:
        items: Cart lines in insertion order
        totals: Subtotal, VAT and total
        vat_rate: Rate applied, 0 when VAT is disabled
        vat_inclusive: Whether line prices already contain VAT
    """

    items: list[CartItem]
    totals: VATCalculation
    vat_rate: Decimal
    vat_inclusive: bool


class OrderService:
    """Service for taking orders through a cart and moving them to completion.

    Every operation validates before it writes: a refused checkout, transition
    or payment leaves no partial state behind.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        payment_repository: PaymentRepository,
        table_repository: TableRepository,
        customer_repository: CustomerRepository,
        settings_repository: SettingsRepository,
        catalog_service: CatalogService,
        cart_repository: CartRepository,
        live_queries: LiveQueryCache | None = None,
    ) -> None:
        """Initialize the OrderService.

        Args:
            order_repository: Repository for orders
            payment_repository: Repository for order and invoice payments
            table_repository: Repository for dining tables
            customer_repository: Repository for customers
            settings_repository: Repository for store settings
            catalog_service: Catalog lookups for items added to carts
            cart_repository: Repository for the per-user carts
            live_queries: Cache notified after each write
        """
        self.order_repository = order_repository
        self.payment_repository = payment_repository
        self.table_repository = table_repository
        self.customer_repository = customer_repository
        self.settings_repository = settings_repository
        self.catalog_service = catalog_service
        self.cart_repository = cart_repository
        self.live_queries = live_queries

    def _changed(self, organization_id: str, *collections: str) -> None:
        if self.live_queries is None:
            return
        for collection in collections:
            self.live_queries.notify(organization_id, collection)

    # Cart

    def get_cart(self, organization_id: str, user_id: str) -> CartSummary:
        """Current cart of a user with totals computed from store settings."""
        cart = self.cart_repository.load_cart(organization_id, user_id)
        return self._summary(organization_id, cart)

    def _summary(self, organization_id: str, cart: Cart) -> CartSummary:
        settings = self.settings_repository.get_settings(organization_id)
        return CartSummary(
            items=cart.items,
            totals=cart.compute_totals(settings.effective_vat_rate, settings.pricing_mode),
            vat_rate=settings.effective_vat_rate,
            vat_inclusive=settings.vat_inclusive,
        )

    def _store_cart(self, organization_id: str, user_id: str, cart: Cart) -> CartSummary:
        self.cart_repository.save_cart(organization_id, user_id, cart)
        return self._summary(organization_id, cart)

    async def add_to_cart(
        self,
        organization_id: str,
        user_id: str,
        item_type: ItemType,
        item_id: str,
        quantity: int = 1,
        variation_id: str | None = None,
        notes: str | None = None,
    ) -> CartSummary:
        """Add a product or service to the user's cart.

        Raises:
            NotFoundError: If the item or variation does not exist
            ValueError: If quantity is not positive
        """
        source = await self.catalog_service.get_item(organization_id, item_type, item_id)
        variation = None
        if variation_id is not None:
            variations = getattr(source, "variations", [])
            variation = next((v for v in variations if v.id == variation_id), None)
            if variation is None:
                raise NotFoundError("variation", variation_id)

        cart = self.cart_repository.load_cart(organization_id, user_id)
        cart.add_item(source, quantity=quantity, notes=notes, variation=variation)
        return self._store_cart(organization_id, user_id, cart)

    def update_cart_quantity(
        self, organization_id: str, user_id: str, line_id: str, quantity: int
    ) -> CartSummary:
        cart = self.cart_repository.load_cart(organization_id, user_id)
        cart.update_quantity(line_id, quantity)
        return self._store_cart(organization_id, user_id, cart)

    def remove_from_cart(self, organization_id: str, user_id: str, line_id: str) -> CartSummary:
        cart = self.cart_repository.load_cart(organization_id, user_id)
        cart.remove_item(line_id)
        return self._store_cart(organization_id, user_id, cart)

    def clear_cart(
        self, organization_id: str, user_id: str, confirmed: bool = False
    ) -> CartSummary:
        cart = self.cart_repository.load_cart(organization_id, user_id)
        cart.clear(confirmed=confirmed)
        return self._store_cart(organization_id, user_id, cart)

    # Checkout

    @traced("order.checkout")
    async def checkout(
        self,
        organization_id: str,
        user_id: str,
        user_name: str,
        order_type: str = DINE_IN,
        table_id: str | None = None,
        customer_id: str | None = None,
        notes: str | None = None,
        include_qr: bool = True,
    ) -> Order:
        """Turn the user's cart into a persisted order.

        The order is written with its table moving to ``occupied`` and the
        user's cart deleted in the same transaction, so a refused write keeps
        the cart.

        Args:
            organization_id: Owning organization
            user_id: Staff member checking out, also selects the cart
            user_name: Display name stored on the order
            order_type: Order type name (dine-in, take-away...)
            table_id: Selected table, required for dine-in when configured
            customer_id: Selected customer, required when configured
            notes: Order notes
            include_qr: Whether printed receipts carry the ZATCA QR code

        Returns:
            The created order

        Raises:
            EmptyOrderError: If the cart has no lines
            MissingContextError: If a required table or customer is not selected
            NotFoundError: If the selected table or customer does not exist
        """
        cart = self.cart_repository.load_cart(organization_id, user_id)
        settings = self.settings_repository.get_settings(organization_id)
        try:
            self._validate_checkout(
                cart,
                settings.require_table_for_dine_in,
                settings.require_customer,
                order_type,
                table_id,
                customer_id,
            )
        except (EmptyOrderError, MissingContextError) as e:
            record_checkout_rejected(type(e).__name__)
            raise

        table = self.table_repository.require(organization_id, table_id) if table_id else None
        customer = (
            self.customer_repository.require(organization_id, customer_id) if customer_id else None
        )

        totals = cart.compute_totals(settings.effective_vat_rate, settings.pricing_mode)
        order = Order(
            id=new_id("ord"),
            organization_id=organization_id,
            order_number=generate_order_number(),
            items=cart.items,
            subtotal=totals.subtotal,
            tax_rate=settings.effective_vat_rate,
            tax_amount=totals.vat_amount,
            total=totals.total,
            pricing_mode=settings.pricing_mode,
            table_id=table.id if table else None,
            table_name=table.name if table else None,
            customer_id=customer.id if customer else None,
            customer_name=customer.name if customer else None,
            customer_phone=customer.phone if customer else None,
            customer_email=customer.email if customer else None,
            order_type=order_type,
            notes=notes,
            include_qr=include_qr,
            created_by_id=user_id,
            created_by_name=user_name,
        )
        self.order_repository.create_with_table(order, cart_owner=user_id)

        record_checkout(order_type, len(order.items))
        logger.info(
            f"Checked out order {order.order_number} for {organization_id}: "
            f"{len(order.items)} lines, total {order.total}"
        )
        self._changed(organization_id, Order.collection, Table.collection)
        return order

    @staticmethod
    def _validate_checkout(
        cart: Cart,
        require_table: bool,
        require_customer: bool,
        order_type: str,
        table_id: str | None,
        customer_id: str | None,
    ) -> None:
        if cart.is_empty:
            raise EmptyOrderError()
        if require_table and order_type == DINE_IN and not table_id:
            raise MissingContextError("table")
        if require_customer and not customer_id:
            raise MissingContextError("customer")

    # Orders

    async def list_orders(
        self, organization_id: str, status: OrderStatus | None = None
    ) -> list[Order]:
        """Orders of an organization, newest first."""
        orders = self.order_repository.list_for_organization(organization_id)
        if status is not None:
            orders = [o for o in orders if o.status is status]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def get_order(self, organization_id: str, order_id: str) -> Order:
        return self.order_repository.require(organization_id, order_id)

    @traced("order.update_status")
    async def update_status(
        self,
        organization_id: str,
        order_id: str,
        target: OrderStatus,
        role: UserRole | None = None,
    ) -> Order:
        """Move an order to ``target`` status.

        Completion requires the order to be paid and releases its table in the
        same transaction. Cancellation also releases the table if it still
        exists. Reopening a completed order requires a supervisor role and
        leaves the table as is.

        Raises:
            NotFoundError: If the order does not exist
            InvalidTransitionError: If the transition is not allowed
            UnpaidOrderError: If completing an unpaid order
            PermissionDeniedError: If reopening without a supervisor role
            ConcurrentModificationError: If the order changed while updating
        """
        order = self.order_repository.require(organization_id, order_id)

        if target is OrderStatus.COMPLETED:
            return await self._complete(order)

        validate_transition(order.status, target)
        if order.status is OrderStatus.COMPLETED:
            require_role(role, SUPERVISOR_ROLES, "reopen a completed order")

        if target is OrderStatus.CANCELLED:
            self._cancel(order)
            updated = order.model_copy(update={"status": OrderStatus.CANCELLED})
            self._changed(organization_id, Order.collection, Table.collection)
        else:
            updated = self.order_repository.update_status(
                organization_id, order_id, order.status, target
            )
            self._changed(organization_id, Order.collection)

        logger.info(f"Order {order.order_number} moved from {order.status.value} to {target.value}")
        return updated

    def _cancel(self, order: Order) -> None:
        try:
            self.order_repository.cancel(order, release_table=True)
        except NotFoundError:
            logger.warning(
                f"Table {order.table_id} of order {order.order_number} no longer exists, "
                "cancelling without release"
            )
            self.order_repository.cancel(order, release_table=False)

    async def _complete(self, order: Order) -> Order:
        payments = self.payment_repository.list_for_parent(order.organization_id, order.id)
        try:
            ensure_can_complete(order, payments)
        except UnpaidOrderError:
            record_completion_refused("unpaid")
            raise

        released = bool(order.table_id)
        try:
            self.order_repository.complete(order, release_table=True)
        except NotFoundError:
            logger.warning(
                f"Table {order.table_id} of order {order.order_number} no longer exists, "
                "completing without release"
            )
            released = False
            self._complete_without_release(order)
        except ConcurrentModificationError:
            self._raise_lost_completion(order)

        record_order_completed(released)
        logger.info(f"Completed order {order.order_number}")
        self._changed(order.organization_id, Order.collection, Table.collection)
        return order.model_copy(update={"status": OrderStatus.COMPLETED})

    def _complete_without_release(self, order: Order) -> None:
        try:
            self.order_repository.complete(order, release_table=False)
        except ConcurrentModificationError:
            self._raise_lost_completion(order)

    def _raise_lost_completion(self, order: Order) -> None:
        """Explain why the conditional completion write was refused."""
        current = self.order_repository.require(order.organization_id, order.id)
        payments = self.payment_repository.list_for_parent(order.organization_id, order.id)
        if current.status is order.status and not is_order_paid(current, payments):
            record_completion_refused("unpaid")
            raise UnpaidOrderError(current.id, current.total, current.amount_paid)
        record_completion_refused("conflict")
        raise ConcurrentModificationError(
            f"Order {order.order_number} changed from {order.status.value} "
            f"to {current.status.value} while completing"
        )

    async def mark_paid(self, organization_id: str, order_id: str) -> Order:
        """Set the manual paid override on an order."""
        order = self.order_repository.mark_paid(organization_id, order_id)
        logger.info(f"Order {order.order_number} marked as paid")
        self._changed(organization_id, Order.collection)
        return order

    async def delete_order(self, organization_id: str, order_id: str) -> None:
        """Delete an order together with its payments."""
        self.order_repository.require(organization_id, order_id)
        payments = self.payment_repository.list_for_parent(organization_id, order_id)
        self.order_repository.delete_with_payments(
            organization_id, order_id, [p.id for p in payments]
        )
        self._changed(organization_id, Order.collection, OrderPayment.collection)

    # Payments

    async def list_payments(self, organization_id: str, order_id: str) -> list[OrderPayment]:
        payments = self.payment_repository.list_for_parent(organization_id, order_id)
        return sorted(payments, key=lambda p: p.payment_date)

    @traced("order.add_payment")
    async def add_payment(
        self,
        organization_id: str,
        order_id: str,
        amount: Decimal,
        payment_method: str,
        reference: str | None = None,
        notes: str | None = None,
    ) -> OrderPayment:
        """Record a payment against an order.

        Raises:
            InvalidPaymentError: If amount is zero or negative
            NotFoundError: If the order does not exist
        """
        if amount <= 0:
            raise InvalidPaymentError(f"Payment amount must be positive, got {amount}")
        self.order_repository.require(organization_id, order_id)

        payment = OrderPayment(
            id=new_id("pay"),
            organization_id=organization_id,
            order_id=order_id,
            amount=amount,
            payment_method=payment_method,
            reference=reference,
            notes=notes,
        )
        self.payment_repository.record(payment, Order.collection)
        record_payment(payment_method, float(amount))
        self._changed(organization_id, Order.collection, OrderPayment.collection)
        return payment

    async def remove_payment(self, organization_id: str, order_id: str, payment_id: str) -> None:
        """Delete a payment and subtract it from the order's paid amount.

        Raises:
            NotFoundError: If the payment does not exist
        """
        payment = self.payment_repository.get_for_parent(organization_id, order_id, payment_id)
        if payment is None:
            raise NotFoundError(OrderPayment.collection, payment_id)
        self.payment_repository.remove(payment, Order.collection)
        logger.info(f"Removed payment {payment_id} of {payment.amount} from order {order_id}")
        self._changed(organization_id, Order.collection, OrderPayment.collection)
