"""DynamoDB single-table document store.

Items are partitioned by ``organization_id`` and addressed by a sort key of
the form ``"{collection}#{doc_id}"``. Unlike a read-and-hope client, every
botocore failure is translated into a POS error and raised: conditional
check failures become ``NotFoundError`` or ``ConcurrentModificationError``,
everything else ``BackendUnavailableError``.
"""

import logging
from typing import Any

from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_pos_service.exceptions import (
    BackendUnavailableError,
    ConcurrentModificationError,
    NotFoundError,
)
from restaurant_pos_service.models.document_models import (
    SORT_KEY_SEPARATOR,
    DocumentModel,
    to_dynamodb_value,
    utc_now,
)

logger = logging.getLogger(__name__)

PARTITION_KEY = "organization_id"
SORT_KEY = "sk"
CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
TRANSACTION_CANCELED = "TransactionCanceledException"
# reason code reported per action of a cancelled transaction
CANCELLED_CONDITION = "ConditionalCheckFailed"


def sort_key(collection: str, doc_id: str) -> str:
    return f"{collection}{SORT_KEY_SEPARATOR}{doc_id}"


def error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def cancellation_codes(error: ClientError) -> list[str]:
    """Per-action reasons of a cancelled transaction, in request order."""
    reasons = error.response.get("CancellationReasons", [])
    return [str(reason.get("Code", "None")) for reason in reasons]


class UpdateBuilder:
    """Builds ``SET`` update expressions with placeholder names and values."""

    def __init__(self) -> None:
        self._assignments: list[str] = []
        self._additions: list[str] = []
        self.names: dict[str, str] = {}
        self.values: dict[str, Any] = {}

    def _placeholder(self, field: str) -> tuple[str, str]:
        index = len(self.names)
        name, value = f"#f{index}", f":v{index}"
        self.names[name] = field
        return name, value

    def set(self, field: str, value: Any) -> "UpdateBuilder":
        name, placeholder = self._placeholder(field)
        self.values[placeholder] = to_dynamodb_value(value)
        self._assignments.append(f"{name} = {placeholder}")
        return self

    def add(self, field: str, value: Any) -> "UpdateBuilder":
        name, placeholder = self._placeholder(field)
        self.values[placeholder] = to_dynamodb_value(value)
        self._additions.append(f"{name} {placeholder}")
        return self

    def name(self, field: str) -> str:
        """Placeholder for an attribute used in a condition expression."""
        for placeholder, existing in self.names.items():
            if existing == field:
                return placeholder
        placeholder, _ = self._placeholder(field)
        return placeholder

    def value(self, key: str, value: Any) -> str:
        placeholder = f":c_{key}"
        self.values[placeholder] = to_dynamodb_value(value)
        return placeholder

    @property
    def expression(self) -> str:
        parts = []
        if self._assignments:
            parts.append("SET " + ", ".join(self._assignments))
        if self._additions:
            parts.append("ADD " + ", ".join(self._additions))
        return " ".join(parts)


class DocumentStore:
    """CRUD and transactional writes against the POS document table."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize the store.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)
        self._serializer = TypeSerializer()

    def put(self, document: DocumentModel, must_not_exist: bool = False) -> None:
        """Write a full document.

        Raises:
            ConcurrentModificationError: If ``must_not_exist`` and the id is taken
            BackendUnavailableError: On any other DynamoDB failure
        """
        kwargs: dict[str, Any] = {"Item": document.to_dynamodb_item()}
        if must_not_exist:
            kwargs["ConditionExpression"] = "attribute_not_exists(sk)"
        try:
            self.table.put_item(**kwargs)
        except ClientError as e:
            if error_code(e) == CONDITIONAL_CHECK_FAILED:
                raise ConcurrentModificationError(
                    f"{document.collection} '{document.id}' already exists"
                ) from e
            logger.error(f"Failed to put {document.collection} {document.id}: {e}")
            raise BackendUnavailableError("put_item", e) from e

    def get(self, organization_id: str, key: str) -> dict[str, Any] | None:
        """Fetch one item by sort key, None if it does not exist."""
        try:
            response = self.table.get_item(
                Key={PARTITION_KEY: organization_id, SORT_KEY: key}, ConsistentRead=True
            )
        except ClientError as e:
            logger.error(f"Failed to get {key}: {e}")
            raise BackendUnavailableError("get_item", e) from e
        return response.get("Item")

    def query_prefix(self, organization_id: str, prefix: str) -> list[dict[str, Any]]:
        """All items of an organization whose sort key starts with ``prefix``."""
        condition = Key(PARTITION_KEY).eq(organization_id) & Key(SORT_KEY).begins_with(prefix)
        items: list[dict[str, Any]] = []
        kwargs: dict[str, Any] = {"KeyConditionExpression": condition}
        try:
            while True:
                response = self.table.query(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Failed to query {prefix} for {organization_id}: {e}")
            raise BackendUnavailableError("query", e) from e
        return items

    def scan_prefix(self, prefix: str) -> list[dict[str, Any]]:
        """Items of every organization whose sort key starts with ``prefix``.

        Only used by scheduled housekeeping; request paths stay within one partition.
        """
        items: list[dict[str, Any]] = []
        kwargs: dict[str, Any] = {"FilterExpression": Attr(SORT_KEY).begins_with(prefix)}
        try:
            while True:
                response = self.table.scan(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Failed to scan {prefix}: {e}")
            raise BackendUnavailableError("scan", e) from e
        return items

    def update(
        self,
        organization_id: str,
        key: str,
        builder: UpdateBuilder,
        condition: str | None = None,
    ) -> dict[str, Any]:
        """Apply an update to an existing item and return the new item.

        The item must exist. ``condition`` is ANDed with the existence check;
        when it fails the caller gets ``ConcurrentModificationError``.

        Raises:
            NotFoundError: If the item does not exist
            ConcurrentModificationError: If ``condition`` does not hold
            BackendUnavailableError: On any other DynamoDB failure
        """
        builder.set("updated_at", utc_now())
        condition_expression = "attribute_exists(sk)"
        if condition:
            condition_expression = f"{condition_expression} AND ({condition})"
        try:
            response = self.table.update_item(
                Key={PARTITION_KEY: organization_id, SORT_KEY: key},
                UpdateExpression=builder.expression,
                ConditionExpression=condition_expression,
                ExpressionAttributeNames=builder.names,
                ExpressionAttributeValues=builder.values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if error_code(e) == CONDITIONAL_CHECK_FAILED:
                if condition and self.get(organization_id, key) is not None:
                    raise ConcurrentModificationError(f"{key} was modified concurrently") from e
                collection, _, doc_id = key.partition(SORT_KEY_SEPARATOR)
                raise NotFoundError(collection, doc_id) from e
            logger.error(f"Failed to update {key}: {e}")
            raise BackendUnavailableError("update_item", e) from e
        return response["Attributes"]

    def delete(self, organization_id: str, key: str) -> None:
        """Delete an item; deleting a missing item is not an error."""
        try:
            self.table.delete_item(Key={PARTITION_KEY: organization_id, SORT_KEY: key})
        except ClientError as e:
            logger.error(f"Failed to delete {key}: {e}")
            raise BackendUnavailableError("delete_item", e) from e

    def put_action(self, document: DocumentModel, must_not_exist: bool = True) -> dict[str, Any]:
        """Transaction action writing ``document``."""
        action: dict[str, Any] = {
            "TableName": self.table_name,
            "Item": self._serialize(document.to_dynamodb_item()),
        }
        if must_not_exist:
            action["ConditionExpression"] = "attribute_not_exists(sk)"
        return {"Put": action}

    def update_action(
        self,
        organization_id: str,
        key: str,
        builder: UpdateBuilder,
        condition: str | None = None,
    ) -> dict[str, Any]:
        """Transaction action updating an existing item."""
        builder.set("updated_at", utc_now())
        condition_expression = "attribute_exists(sk)"
        if condition:
            condition_expression = f"{condition_expression} AND ({condition})"
        return {
            "Update": {
                "TableName": self.table_name,
                "Key": self._serialize({PARTITION_KEY: organization_id, SORT_KEY: key}),
                "UpdateExpression": builder.expression,
                "ConditionExpression": condition_expression,
                "ExpressionAttributeNames": builder.names,
                "ExpressionAttributeValues": self._serialize(builder.values),
            }
        }

    def delete_action(
        self, organization_id: str, key: str, must_exist: bool = False
    ) -> dict[str, Any]:
        """Transaction action deleting an item."""
        action: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": self._serialize({PARTITION_KEY: organization_id, SORT_KEY: key}),
        }
        if must_exist:
            action["ConditionExpression"] = "attribute_exists(sk)"
        return {"Delete": action}

    def transact(self, actions: list[dict[str, Any]]) -> None:
        """Run actions atomically; all apply or none do.

        Raises:
            ClientError: ``TransactionCanceledException`` is re-raised unchanged so
                callers can inspect which condition failed
            BackendUnavailableError: On any other DynamoDB failure
        """
        try:
            self.dynamodb.meta.client.transact_write_items(TransactItems=actions)
        except ClientError as e:
            if error_code(e) == TRANSACTION_CANCELED:
                raise
            logger.error(f"Transaction of {len(actions)} actions failed: {e}")
            raise BackendUnavailableError("transact_write_items", e) from e

    def _serialize(self, data: dict[str, Any]) -> dict[str, Any]:
        return {k: self._serializer.serialize(v) for k, v in data.items()}
