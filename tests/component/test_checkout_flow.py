"""Component tests for the cart to completion flow.

Real services, repositories and document store run against an in-memory
stand-in for the DynamoDB table so the state left behind by each step can be
checked. Condition expressions are not evaluated.
"""

from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock

import pytest
from boto3.dynamodb.types import TypeDeserializer

from restaurant_pos_service.exceptions import NotFoundError, UnpaidOrderError
from restaurant_pos_service.models.catalog_models import ItemType, Product
from restaurant_pos_service.models.order_models import OrderStatus, Table, TableStatus
from restaurant_pos_service.models.settings_models import StoreSettings
from restaurant_pos_service.repositories.document_store import DocumentStore
from restaurant_pos_service.wiring import Services, build_services

USER_ID = "user_cashier"
USER_NAME = "Cashier One"


def apply_update(
    item: dict[str, Any], expression: str, names: dict[str, str], values: dict[str, Any]
) -> None:
    """Apply a ``SET a = :x, ... ADD b :y`` expression to ``item``."""
    set_part, _, add_part = expression.partition("ADD ")
    set_part = set_part.strip().removeprefix("SET ").strip()
    for assignment in filter(None, (part.strip() for part in set_part.split(","))):
        name, value = (side.strip() for side in assignment.split("="))
        item[names[name]] = values[value]
    for addition in filter(None, (part.strip() for part in add_part.split(","))):
        name, value = addition.split()
        item[names[name]] = item.get(names[name], Decimal("0")) + values[value]


class InMemoryTable:
    """Enough of a boto3 ``Table`` and ``transact_write_items`` for the flow."""

    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict[str, Any]] = {}
        self.transactions: list[list[dict[str, Any]]] = []
        self._deserializer = TypeDeserializer()

    def seed(self, *documents: Any) -> None:
        for document in documents:
            self.put_item(Item=document.to_dynamodb_item())

    def item(self, organization_id: str, key: str) -> dict[str, Any] | None:
        return self.items.get((organization_id, key))

    def put_item(self, Item: dict[str, Any], **_: Any) -> dict[str, Any]:
        self.items[(Item["organization_id"], Item["sk"])] = dict(Item)
        return {}

    def get_item(self, Key: dict[str, Any], **_: Any) -> dict[str, Any]:
        item = self.items.get((Key["organization_id"], Key["sk"]))
        return {"Item": dict(item)} if item is not None else {}

    def query(self, KeyConditionExpression: Any, **_: Any) -> dict[str, Any]:
        partition, prefix = (
            condition.get_expression()["values"][1]
            for condition in KeyConditionExpression.get_expression()["values"]
        )
        matches = [
            dict(item)
            for (organization_id, key), item in sorted(self.items.items())
            if organization_id == partition and key.startswith(prefix)
        ]
        return {"Items": matches}

    def update_item(
        self,
        Key: dict[str, Any],
        UpdateExpression: str,
        ExpressionAttributeNames: dict[str, str],
        ExpressionAttributeValues: dict[str, Any],
        **_: Any,
    ) -> dict[str, Any]:
        item = self.items[(Key["organization_id"], Key["sk"])]
        apply_update(item, UpdateExpression, ExpressionAttributeNames, ExpressionAttributeValues)
        return {"Attributes": dict(item)}

    def delete_item(self, Key: dict[str, Any], **_: Any) -> dict[str, Any]:
        self.items.pop((Key["organization_id"], Key["sk"]), None)
        return {}

    def transact_write_items(self, TransactItems: list[dict[str, Any]]) -> dict[str, Any]:
        self.transactions.append(TransactItems)
        for action in TransactItems:
            if "Put" in action:
                self.put_item(Item=self._deserialize(action["Put"]["Item"]))
            elif "Update" in action:
                update = action["Update"]
                self.update_item(
                    Key=self._deserialize(update["Key"]),
                    UpdateExpression=update["UpdateExpression"],
                    ExpressionAttributeNames=update["ExpressionAttributeNames"],
                    ExpressionAttributeValues=self._deserialize(
                        update["ExpressionAttributeValues"]
                    ),
                )
            elif "Delete" in action:
                self.delete_item(Key=self._deserialize(action["Delete"]["Key"]))
        return {}

    def _deserialize(self, data: dict[str, Any]) -> dict[str, Any]:
        return {k: self._deserializer.deserialize(v) for k, v in data.items()}


@pytest.mark.component
class TestCheckoutFlow:
    """Test suite for checkout, payment and completion over one document store."""

    @pytest.fixture
    def dynamodb_table(
        self, burger: Product, table: Table, settings: StoreSettings
    ) -> InMemoryTable:
        dynamodb_table = InMemoryTable()
        dynamodb_table.seed(burger, table, settings)
        return dynamodb_table

    @pytest.fixture
    def services(self, dynamodb_table: InMemoryTable) -> Services:
        dynamodb_resource = MagicMock()
        dynamodb_resource.Table.return_value = dynamodb_table
        dynamodb_resource.meta.client.transact_write_items.side_effect = (
            dynamodb_table.transact_write_items
        )
        return build_services(DocumentStore(dynamodb_resource, "test-pos-table"))

    @pytest.mark.asyncio
    async def test_dine_in_order_from_cart_to_completion(
        self, services: Services, dynamodb_table: InMemoryTable, organization_id: str
    ) -> None:
        """Test that a seated order occupies its table until it is paid and completed."""
        orders = services.order_service
        await orders.add_to_cart(organization_id, USER_ID, ItemType.PRODUCT, "prod_burger")
        cart = await orders.add_to_cart(
            organization_id, USER_ID, ItemType.PRODUCT, "prod_burger", quantity=1
        )

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert cart.totals.subtotal == Decimal("50.00")
        assert cart.totals.vat_amount == Decimal("7.5")
        assert cart.totals.total == Decimal("57.5")

        order = await orders.checkout(organization_id, USER_ID, USER_NAME, table_id="tbl_1")

        stored = await orders.get_order(organization_id, order.id)
        assert stored.status is OrderStatus.OPEN
        assert stored.total == Decimal("57.5")
        assert stored.table_name == "T1"
        assert stored.created_by_name == USER_NAME
        assert dynamodb_table.item(organization_id, "tables#tbl_1")["status"] == "occupied"
        assert orders.get_cart(organization_id, USER_ID).items == []

        with pytest.raises(UnpaidOrderError):
            await orders.update_status(organization_id, order.id, OrderStatus.COMPLETED)
        assert dynamodb_table.item(organization_id, "tables#tbl_1")["status"] == "occupied"

        await orders.add_payment(organization_id, order.id, Decimal("40"), "cash")
        await orders.add_payment(organization_id, order.id, Decimal("17.5"), "card")

        paid = await orders.get_order(organization_id, order.id)
        assert paid.amount_paid == Decimal("57.5")
        assert len(await orders.list_payments(organization_id, order.id)) == 2

        completed = await orders.update_status(organization_id, order.id, OrderStatus.COMPLETED)

        assert completed.status is OrderStatus.COMPLETED
        stored = await orders.get_order(organization_id, order.id)
        assert stored.status is OrderStatus.COMPLETED
        assert dynamodb_table.item(organization_id, "tables#tbl_1")["status"] == "available"

    @pytest.mark.asyncio
    async def test_cancel_releases_table(
        self, services: Services, dynamodb_table: InMemoryTable, organization_id: str
    ) -> None:
        """Test that cancelling an unpaid order frees its table."""
        orders = services.order_service
        await orders.add_to_cart(organization_id, USER_ID, ItemType.PRODUCT, "prod_burger")
        order = await orders.checkout(organization_id, USER_ID, USER_NAME, table_id="tbl_1")

        await orders.update_status(organization_id, order.id, OrderStatus.CANCELLED)

        stored = await orders.get_order(organization_id, order.id)
        assert stored.status is OrderStatus.CANCELLED
        assert dynamodb_table.item(organization_id, "tables#tbl_1")["status"] == "available"

    @pytest.mark.asyncio
    async def test_take_away_order_leaves_tables_alone(
        self, services: Services, dynamodb_table: InMemoryTable, organization_id: str
    ) -> None:
        """Test that an order without a table is written together with the cart removal."""
        orders = services.order_service
        await orders.add_to_cart(organization_id, USER_ID, ItemType.PRODUCT, "prod_burger")
        assert dynamodb_table.item(organization_id, f"carts#{USER_ID}") is not None

        order = await orders.checkout(organization_id, USER_ID, USER_NAME, order_type="take-away")

        (transaction,) = dynamodb_table.transactions
        assert [next(iter(action)) for action in transaction] == ["Put", "Delete"]
        assert dynamodb_table.item(organization_id, f"orders#{order.id}") is not None
        assert dynamodb_table.item(organization_id, f"carts#{USER_ID}") is None
        assert dynamodb_table.item(organization_id, "tables#tbl_1")["status"] == "available"

    @pytest.mark.asyncio
    async def test_cart_survives_a_new_service_instance(
        self, services: Services, dynamodb_table: InMemoryTable, organization_id: str
    ) -> None:
        """Test that a cart built through one set of services is seen by another."""
        await services.order_service.add_to_cart(
            organization_id, USER_ID, ItemType.PRODUCT, "prod_burger", quantity=3
        )
        dynamodb_resource = MagicMock()
        dynamodb_resource.Table.return_value = dynamodb_table
        other = build_services(DocumentStore(dynamodb_resource, "test-pos-table"))

        cart = other.order_service.get_cart(organization_id, USER_ID)

        assert [line.quantity for line in cart.items] == [3]
        assert cart.totals.subtotal == Decimal("75.00")

    @pytest.mark.asyncio
    async def test_checkout_with_unknown_table_keeps_cart(
        self, services: Services, dynamodb_table: InMemoryTable, organization_id: str
    ) -> None:
        """Test that a refused checkout writes nothing and leaves the cart intact."""
        orders = services.order_service
        await orders.add_to_cart(organization_id, USER_ID, ItemType.PRODUCT, "prod_burger")

        with pytest.raises(NotFoundError):
            await orders.checkout(organization_id, USER_ID, USER_NAME, table_id="tbl_missing")

        assert len(orders.get_cart(organization_id, USER_ID).items) == 1
        assert await orders.list_orders(organization_id) == []

    @pytest.mark.asyncio
    async def test_table_subscribers_see_occupancy_changes(
        self, services: Services, organization_id: str
    ) -> None:
        """Test that live queries push table snapshots after checkout and completion."""
        snapshots: list[list[dict[str, Any]]] = []
        handle = services.live_queries.open(organization_id, "tables", snapshots.append)
        orders = services.order_service

        await orders.add_to_cart(organization_id, USER_ID, ItemType.PRODUCT, "prod_burger")
        order = await orders.checkout(organization_id, USER_ID, USER_NAME, table_id="tbl_1")
        await orders.mark_paid(organization_id, order.id)
        await orders.update_status(organization_id, order.id, OrderStatus.COMPLETED)
        services.live_queries.close(handle)

        statuses = [snapshot[0]["status"] for snapshot in snapshots]
        assert statuses[0] == TableStatus.AVAILABLE.value
        assert TableStatus.OCCUPIED.value in statuses
        assert statuses[-1] == TableStatus.AVAILABLE.value
        assert services.live_queries.subscriber_count(organization_id, "tables") == 0
